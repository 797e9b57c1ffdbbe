"""
Alta de usuarios por OTP, perfil, ubicación y billetera (SQL).

El envío del código es un colaborador externo: cualquier objeto con
`send(phone, code) -> bool`. Por defecto solo se deja en el log.
"""
import logging
import secrets
from datetime import datetime, timedelta, timezone

from sqlalchemy.exc import IntegrityError

import config
from database import OtpSQL, UserSQL, WalletSQL
from errors import Conflict, InternalError, NotFound, ValidationError
from models import UserRole

logger = logging.getLogger(__name__)

# Intentos para encontrar un código de referido libre
REFERRAL_CODE_ATTEMPTS = 10


class LogOtpSender:
    def send(self, phone, code):
        logger.info(f"OTP para {phone}: {code}")
        return True


def _utcnow():
    return datetime.now(timezone.utc).replace(tzinfo=None)


def user_to_json(user):
    return {
        "id": user.id,
        "phone": user.phone,
        "name": user.name,
        "email": user.email,
        "gender": user.gender,
        "role": user.role,
        "referralCode": user.referral_code,
        "referredBy": user.referred_by_id,
        "location": {"latitude": user.latitude, "longitude": user.longitude},
        "address": user.address,
    }


def wallet_to_json(wallet):
    if wallet is None:
        return None
    return {
        "id": wallet.id,
        "userId": wallet.user_id,
        "balance": wallet.balance,
        "nonWithdrawableBalance": wallet.non_withdrawable_balance,
    }


class UserService:
    def __init__(self, sender=None, otp_ttl=None, signup_bonus=None, referral_bonus=None):
        self.sender = sender or LogOtpSender()
        self.otp_ttl = otp_ttl if otp_ttl is not None else config.OTP_TTL_SECONDS
        self.signup_bonus = signup_bonus if signup_bonus is not None else config.SIGNUP_BONUS
        self.referral_bonus = referral_bonus if referral_bonus is not None else config.REFERRAL_BONUS

    # -----------------------
    # OTP
    # -----------------------
    def send_otp(self, db_sql, phone):
        code = f"{secrets.randbelow(1000000):06d}"
        # Solo vale el último código emitido
        db_sql.query(OtpSQL).filter(OtpSQL.phone == phone).delete()
        db_sql.add(OtpSQL(phone=phone, code=code, expires_at=_utcnow() + timedelta(seconds=self.otp_ttl)))
        db_sql.commit()

        if not self.sender.send(phone, code):
            raise ValidationError("Could not deliver OTP", reason="otp-delivery")
        return code

    def _check_otp(self, db_sql, phone, code):
        otp = (
            db_sql.query(OtpSQL)
            .filter(OtpSQL.phone == phone, OtpSQL.code == code)
            .first()
        )
        if not otp:
            raise ValidationError("Invalid OTP", reason="invalid-otp")
        if otp.expires_at < _utcnow():
            db_sql.delete(otp)
            db_sql.commit()
            raise ValidationError("OTP expired", reason="invalid-otp")
        db_sql.delete(otp)

    def verify_otp(self, db_sql, phone, code, referral_code=None):
        referrer = None
        user = db_sql.query(UserSQL).filter(UserSQL.phone == phone).first()
        if not user and referral_code:
            referrer = db_sql.query(UserSQL).filter(UserSQL.referral_code == referral_code).first()
            if not referrer:
                raise ValidationError("Invalid referral code", reason="invalid-referral")

        self._check_otp(db_sql, phone, code)

        if user:
            db_sql.commit()
            db_sql.refresh(user)
            return user

        try:
            user = UserSQL(
                phone=phone,
                role=UserRole.user.value,
                referral_code=self._new_referral_code(db_sql),
                referred_by_id=referrer.id if referrer else None,
            )
            db_sql.add(user)
            db_sql.flush()
            db_sql.add(WalletSQL(user_id=user.id, balance=self.signup_bonus, non_withdrawable_balance=0))
            if referrer:
                self._credit_referral(db_sql, referrer)
            db_sql.commit()
        except IntegrityError:
            # Otro verify del mismo teléfono creó el usuario antes
            db_sql.rollback()
            user = db_sql.query(UserSQL).filter(UserSQL.phone == phone).first()
            if not user:
                raise InternalError("Could not create user", reason="storage")
            db_sql.query(OtpSQL).filter(OtpSQL.phone == phone, OtpSQL.code == code).delete()
            db_sql.commit()
            logger.warning(f"Alta concurrente para {phone}; se usa el usuario {user.id}")
            return user

        db_sql.refresh(user)
        logger.info(f"✅ Usuario creado {user.id} ({phone})")
        return user

    def _random_referral_code(self):
        return f"SALON{secrets.token_hex(4).upper()}"

    def _new_referral_code(self, db_sql):
        for _ in range(REFERRAL_CODE_ATTEMPTS):
            code = self._random_referral_code()
            if not db_sql.query(UserSQL).filter(UserSQL.referral_code == code).first():
                return code
        logger.error(f"Sin código de referido libre tras {REFERRAL_CODE_ATTEMPTS} intentos")
        raise InternalError("Could not generate a referral code", reason="referral-code")

    def _credit_referral(self, db_sql, referrer):
        wallet = db_sql.query(WalletSQL).filter(WalletSQL.user_id == referrer.id).first()
        if wallet is None:
            wallet = WalletSQL(user_id=referrer.id, balance=0, non_withdrawable_balance=0)
            db_sql.add(wallet)
        wallet.non_withdrawable_balance = (wallet.non_withdrawable_balance or 0) + self.referral_bonus
        logger.info(f"Bono de referido {self.referral_bonus} para usuario {referrer.id}")

    # -----------------------
    # PERFIL
    # -----------------------
    def get_user(self, db_sql, user_id):
        user = db_sql.get(UserSQL, user_id)
        if not user:
            raise NotFound("User not found", reason="user")
        return user

    def list_users(self, db_sql):
        return db_sql.query(UserSQL).order_by(UserSQL.id).all()

    def update_profile(self, db_sql, user_id, profile):
        user = self.get_user(db_sql, user_id)
        user.name = profile.name
        user.email = profile.email
        user.gender = profile.gender
        try:
            db_sql.commit()
        except IntegrityError:
            db_sql.rollback()
            raise Conflict("Email already in use", reason="email-taken")
        db_sql.refresh(user)
        return user

    def update_location(self, db_sql, phone, latitude, longitude):
        user = db_sql.query(UserSQL).filter(UserSQL.phone == phone).first()
        if not user:
            raise NotFound("User not found", reason="user")
        user.latitude = latitude
        user.longitude = longitude
        db_sql.commit()
        return user
