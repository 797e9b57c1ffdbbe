import logging
import smtplib
from email.message import EmailMessage

import config

logger = logging.getLogger(__name__)

ASUNTO_RECORDATORIO = "Reminder: your salon appointment is tomorrow"


def construir_recordatorio(remitente, destinatario, reserva, nombre_cliente=None):
    """Arma el correo de recordatorio a partir de los datos de la reserva."""
    lineas = [
        f"Hi {nombre_cliente or 'there'},",
        "",
        "This is a reminder of your appointment tomorrow:",
        "",
        f"Date: {reserva['fecha']}",
        f"Time slot: {reserva['franja']}",
        f"Seat: {reserva['asiento']}",
    ]
    if reserva.get("servicio"):
        lineas.append(f"Service: {reserva['servicio']}")
    lineas += ["", "See you soon!"]

    msg = EmailMessage()
    msg["From"] = remitente
    msg["To"] = destinatario
    msg["Subject"] = ASUNTO_RECORDATORIO
    msg.set_content("\n".join(lineas))
    return msg


def enviar_recordatorio_reserva(destinatario, nombre_cliente, fecha, franja, asiento, servicio=None,
                                smtp_factory=smtplib.SMTP):
    if not config.MAIL_USERNAME or not config.MAIL_PASSWORD:
        logger.warning("⚠️ Correo sin configurar (MAIL_USERNAME / MAIL_PASSWORD); recordatorio omitido")
        return False

    msg = construir_recordatorio(
        config.MAIL_FROM,
        destinatario,
        {"fecha": fecha, "franja": franja, "asiento": asiento, "servicio": servicio},
        nombre_cliente,
    )
    try:
        with smtp_factory(config.MAIL_SERVER, config.MAIL_PORT) as server:
            server.starttls()
            server.login(config.MAIL_USERNAME, config.MAIL_PASSWORD)
            server.send_message(msg)
    except (smtplib.SMTPException, OSError) as e:
        logger.warning(f"⚠️ Error enviando recordatorio a {destinatario}: {e}")
        return False

    logger.info(f"Recordatorio enviado a {destinatario} ({fecha} {franja})")
    return True
