import logging
import smtplib
from email.message import EmailMessage

from ..config import Settings
from .rendering import render

logger = logging.getLogger("rapid-steno.mail")


class Mailer:
    def __init__(self, settings: Settings):
        self.settings = settings

    def send(self, to_email: str, subject: str, text: str, html: str | None = None) -> bool:
        if not self.settings.mail_enabled:
            logger.info("SMTP not configured; skipping mail to %s (%s)", to_email, subject)
            return False

        msg = EmailMessage()
        msg["Subject"] = subject
        msg["From"] = self.settings.mail_from
        msg["To"] = to_email
        msg.set_content(text)
        if html:
            msg.add_alternative(html, subtype="html")

        try:
            with smtplib.SMTP(self.settings.smtp_host, self.settings.smtp_port, timeout=15) as server:
                server.starttls()
                server.login(self.settings.smtp_user, self.settings.smtp_pass)
                server.send_message(msg)
        except (smtplib.SMTPException, OSError) as e:
            logger.error("Failed to send mail to %s: %s", to_email, e)
            return False

        logger.info("Mail sent to %s (%s)", to_email, subject)
        return True

    def send_otp(self, to_email: str, otp: str) -> bool:
        return self.send(
            to_email,
            "Your Rapid Steno login code",
            f"Your one-time login code is {otp}. It expires in 10 minutes.",
            render("otp_email.html", otp=otp),
        )

    def send_login_notification(self, to_email: str, name: str, ip_address: str, user_agent: str, location: str) -> bool:
        return self.send(
            to_email,
            "New login to your Rapid Steno account",
            f"A new login was detected from {ip_address} ({user_agent}, {location}).",
            render(
                "login_notification.html",
                name=name,
                ip_address=ip_address,
                user_agent=user_agent,
                location=location,
            ),
        )
