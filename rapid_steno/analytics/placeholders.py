from dataclasses import dataclass


@dataclass(frozen=True)
class PlaceholderEntry:
    key: str
    name: str
    best_percentage: float
    tests_completed: int
    average_percentage: float


# Synthetic leaderboard rows shown alongside real students when enabled.
# They are always reported with is_placeholder=True.
placeholder_entries: tuple[PlaceholderEntry, ...] = (
    PlaceholderEntry("placeholder-1", "Raj Sharma", best_percentage=95, tests_completed=15, average_percentage=85),
    PlaceholderEntry("placeholder-2", "Priya Patel", best_percentage=88, tests_completed=12, average_percentage=80),
    PlaceholderEntry("placeholder-3", "Amit Kumar", best_percentage=75, tests_completed=10, average_percentage=70),
    PlaceholderEntry("placeholder-4", "Neha Singh", best_percentage=55, tests_completed=6, average_percentage=50),
    PlaceholderEntry("placeholder-5", "Vikram Malhotra", best_percentage=92, tests_completed=14, average_percentage=82),
    PlaceholderEntry("placeholder-6", "Ananya Desai", best_percentage=87, tests_completed=11, average_percentage=79),
    PlaceholderEntry("placeholder-7", "Rahul Verma", best_percentage=83, tests_completed=13, average_percentage=76),
    PlaceholderEntry("placeholder-8", "Meera Joshi", best_percentage=78, tests_completed=9, average_percentage=72),
    PlaceholderEntry("placeholder-9", "Arjun Reddy", best_percentage=73, tests_completed=8, average_percentage=68),
    PlaceholderEntry("placeholder-10", "Divya Gupta", best_percentage=69, tests_completed=7, average_percentage=64),
    PlaceholderEntry("placeholder-11", "Karan Kapoor", best_percentage=67, tests_completed=9, average_percentage=62),
    PlaceholderEntry("placeholder-12", "Pooja Mehta", best_percentage=63, tests_completed=6, average_percentage=58),
    PlaceholderEntry("placeholder-13", "Sanjay Trivedi", best_percentage=59, tests_completed=5, average_percentage=54),
    PlaceholderEntry("placeholder-14", "Anjali Nair", best_percentage=57, tests_completed=7, average_percentage=52),
    PlaceholderEntry("placeholder-15", "Vivek Choudhary", best_percentage=93, tests_completed=16, average_percentage=84),
    PlaceholderEntry("placeholder-16", "Ritu Agarwal", best_percentage=89, tests_completed=13, average_percentage=81),
    PlaceholderEntry("placeholder-17", "Deepak Sharma", best_percentage=85, tests_completed=12, average_percentage=78),
    PlaceholderEntry("placeholder-18", "Kavita Rao", best_percentage=81, tests_completed=10, average_percentage=74),
    PlaceholderEntry("placeholder-19", "Rajesh Khanna", best_percentage=77, tests_completed=9, average_percentage=71),
    PlaceholderEntry("placeholder-20", "Sunita Iyer", best_percentage=71, tests_completed=8, average_percentage=66),
    PlaceholderEntry("placeholder-21", "Manoj Tiwari", best_percentage=68, tests_completed=7, average_percentage=63),
    PlaceholderEntry("placeholder-22", "Geeta Bansal", best_percentage=65, tests_completed=6, average_percentage=60),
    PlaceholderEntry("placeholder-23", "Prakash Jha", best_percentage=61, tests_completed=5, average_percentage=56),
    PlaceholderEntry("placeholder-24", "Lata Menon", best_percentage=58, tests_completed=4, average_percentage=53),
    PlaceholderEntry("placeholder-25", "Suresh Patel", best_percentage=94, tests_completed=17, average_percentage=86),
    PlaceholderEntry("placeholder-26", "Nisha Sharma", best_percentage=90, tests_completed=14, average_percentage=83),
    PlaceholderEntry("placeholder-27", "Anil Kumar", best_percentage=86, tests_completed=13, average_percentage=79),
    PlaceholderEntry("placeholder-28", "Shweta Verma", best_percentage=82, tests_completed=11, average_percentage=75),
    PlaceholderEntry("placeholder-29", "Vijay Malhotra", best_percentage=79, tests_completed=10, average_percentage=73),
    PlaceholderEntry("placeholder-30", "Asha Desai", best_percentage=74, tests_completed=9, average_percentage=69),
    PlaceholderEntry("placeholder-31", "Rakesh Singh", best_percentage=70, tests_completed=8, average_percentage=65),
    PlaceholderEntry("placeholder-32", "Mala Gupta", best_percentage=66, tests_completed=7, average_percentage=61),
    PlaceholderEntry("placeholder-33", "Dinesh Reddy", best_percentage=62, tests_completed=6, average_percentage=57),
    PlaceholderEntry("placeholder-34", "Rekha Joshi", best_percentage=60, tests_completed=5, average_percentage=55),
    PlaceholderEntry("placeholder-35", "Harish Mehta", best_percentage=56, tests_completed=4, average_percentage=51),
)
