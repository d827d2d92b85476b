import requests
import logging
import json
from concurrent.futures import Future, ThreadPoolExecutor
from datetime import datetime
from typing import Any, Dict, Optional

from app.core.config import get_settings

logger = logging.getLogger(__name__)


class EmailNotificationService:
    """
    Envío de e-mails transaccionales a través de una API HTTP.

    Los envíos se despachan en un pool de hilos y nunca bloquean ni hacen
    fallar la operación que los originó: cualquier error queda en el log.
    """

    def __init__(
        self,
        api_url: Optional[str],
        api_key: Optional[str],
        from_email: Optional[str] = None,
        from_name: Optional[str] = None,
        enabled: bool = True,
        timeout: int = 10,
        max_workers: int = 4,
    ):
        self.api_url = api_url
        self.api_key = api_key
        self.from_email = from_email
        self.from_name = from_name
        self.enabled = enabled and bool(api_url) and bool(api_key)
        self.timeout = timeout
        self.headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json; charset=utf-8"
        }
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="email")

        if enabled and not self.enabled:
            logger.warning("⚠️  EMAIL_API_URL o EMAIL_API_KEY no configurados - los e-mails estarán deshabilitados")

    def send_email(self, to: str, subject: str, body: str, data: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """
        Envío sincrónico de un e-mail.

        Returns:
            Diccionario con resultado del envío
        """
        if not self.enabled:
            logger.debug(f"E-mails deshabilitados, se omite '{subject}' para {to}")
            return {"success": False, "errors": ["Email disabled"]}
        if not to:
            return {"success": False, "errors": ["No recipient provided"]}

        payload = {
            "from": {"email": self.from_email, "name": self.from_name},
            "to": [{"email": to}],
            "subject": subject,
            "text": body,
            "data": data or {},
        }

        try:
            logger.info(f"Sending email to {to}: {subject}")
            response = requests.post(
                self.api_url,
                headers=self.headers,
                data=json.dumps(payload),
                timeout=self.timeout,
            )
            if response.status_code in (200, 201, 202):
                return {"success": True, "status_code": response.status_code}

            error_msg = f"Email API error: {response.status_code} - {response.text}"
            logger.error(error_msg)
            return {"success": False, "errors": [error_msg]}
        except requests.RequestException as e:
            error_msg = f"Error sending email: {str(e)}"
            logger.error(error_msg, exc_info=True)
            return {"success": False, "errors": [error_msg]}

    def dispatch(self, to: Optional[str], subject: str, body: str, data: Optional[Dict[str, Any]] = None) -> Optional[Future]:
        """Encola el envío y retorna de inmediato."""
        if not self.enabled or not to:
            return None
        return self._executor.submit(self.send_email, to, subject, body, data)

    # === Mensajes del ciclo de vida de la membresía ===

    def send_welcome(self, to: Optional[str], student_name: str, plan_name: str, expiry_date: datetime) -> Optional[Future]:
        body = (
            f"¡Hola {student_name}!\n\n"
            f"Tu membresía '{plan_name}' ya está activa. "
            f"Vence el {expiry_date.strftime('%d/%m/%Y')}.\n"
        )
        return self.dispatch(to, "¡Bienvenido al gimnasio!", body, {"type": "welcome"})

    def send_renewal(self, to: Optional[str], student_name: str, plan_name: str, expiry_date: datetime) -> Optional[Future]:
        body = (
            f"Hola {student_name}, renovaste tu membresía '{plan_name}'. "
            f"Nuevo vencimiento: {expiry_date.strftime('%d/%m/%Y')}.\n"
        )
        return self.dispatch(to, "Membresía renovada", body, {"type": "renewal"})

    def send_expiry_notice(self, to: Optional[str], student_name: str) -> Optional[Future]:
        body = f"Hola {student_name}, tu membresía venció. Renovala para seguir entrenando.\n"
        return self.dispatch(to, "Tu membresía venció", body, {"type": "expired"})

    def send_expiry_reminder(self, to: Optional[str], student_name: str, expiry_date: datetime, days_left: int) -> Optional[Future]:
        body = (
            f"Hola {student_name}, tu membresía vence en {days_left} días "
            f"({expiry_date.strftime('%d/%m/%Y')}).\n"
        )
        return self.dispatch(to, "Tu membresía está por vencer", body, {"type": "expiry_reminder"})

    def shutdown(self, wait: bool = False) -> None:
        self._executor.shutdown(wait=wait)


settings = get_settings()

notification_service = EmailNotificationService(
    api_url=settings.EMAIL_API_URL,
    api_key=settings.EMAIL_API_KEY,
    from_email=settings.EMAILS_FROM_EMAIL,
    from_name=settings.EMAILS_FROM_NAME,
    enabled=settings.EMAILS_ENABLED,
    timeout=settings.EMAIL_TIMEOUT_SECONDS,
    max_workers=settings.NOTIFICATION_WORKERS,
)
