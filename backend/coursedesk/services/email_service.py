"""
Service d'envoi d'emails SMTP.
Utilisé pour l'envoi des liens de réinitialisation de mot de passe.
"""

import logging
import smtplib
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText

from coursedesk.config import settings

logger = logging.getLogger(__name__)


def send_password_reset_email(to_email: str, full_name: str, reset_token: str) -> None:
    """
    Envoie un email HTML contenant le lien de réinitialisation du mot de passe.
    Lève une exception en cas d'échec SMTP.
    """
    reset_url = f"{settings.FRONTEND_URL}/reset-password/{reset_token}"

    msg = MIMEMultipart("alternative")
    msg["From"] = settings.SMTP_FROM
    msg["To"] = to_email
    msg["Subject"] = "CourseDesk : Réinitialisation de votre mot de passe"

    text_content = (
        f"Bonjour {full_name},\n\n"
        f"Pour choisir un nouveau mot de passe, ouvrez ce lien : {reset_url}\n"
        f"Il expire dans {settings.PASSWORD_RESET_EXPIRE_MINUTES} minutes.\n\n"
        "Si vous n'êtes pas à l'origine de cette demande, ignorez ce message."
    )
    html_content = f"""
    <html>
      <body style="font-family: Arial, sans-serif; color: #333; max-width: 600px; margin: auto;">
        <h2 style="color: #1a73e8;">CourseDesk : Mot de passe oublié</h2>
        <p>Bonjour <strong>{full_name}</strong>,</p>
        <p>
          Une réinitialisation de mot de passe a été demandée pour votre compte.
          Le lien ci-dessous expire dans {settings.PASSWORD_RESET_EXPIRE_MINUTES} minutes.
        </p>
        <p style="text-align: center; margin: 24px 0;">
          <a href="{reset_url}" style="background: #1a73e8; color: #fff; padding: 10px 18px;
             text-decoration: none; border-radius: 4px;">Choisir un nouveau mot de passe</a>
        </p>
        <hr style="border: none; border-top: 1px solid #eee;" />
        <p style="font-size: 12px; color: #888;">
          Si vous n'êtes pas à l'origine de cette demande, ignorez ce message.
        </p>
      </body>
    </html>
    """

    msg.attach(MIMEText(text_content, "plain", "utf-8"))
    msg.attach(MIMEText(html_content, "html", "utf-8"))

    # Connexion SMTP et envoi
    with smtplib.SMTP(settings.SMTP_HOST, settings.SMTP_PORT) as server:
        if settings.SMTP_USE_TLS:
            server.starttls()
        if settings.SMTP_USERNAME:
            server.login(settings.SMTP_USERNAME, settings.SMTP_PASSWORD)
        server.send_message(msg)

    logger.info("Email de réinitialisation envoyé à %s", to_email)
