import logging
import math
import re
from datetime import datetime, timezone

from pymongo.errors import DuplicateKeyError

from crud import get_by_id, insert_document, parse_object_id, to_json, update_document
from database import UserSQL
from errors import Conflict, NotFound, ValidationError
from models import SalonStatus

logger = logging.getLogger(__name__)

EARTH_RADIUS_KM = 6371
SEARCH_RADII_KM = (2, 5, 10)
_MAP_COORDS = re.compile(r"@(-?\d+\.\d+),(-?\d+\.\d+)")


def extract_lat_lng(map_url):
    """Saca latitud y longitud de una URL de Google Maps ("...@lat,lng,...")."""
    match = _MAP_COORDS.search(map_url or "")
    if match:
        return float(match.group(1)), float(match.group(2))
    return None, None


def haversine_km(lat1, lon1, lat2, lon2):
    d_lat = math.radians(lat2 - lat1)
    d_lon = math.radians(lon2 - lon1)
    a = (
        math.sin(d_lat / 2) ** 2
        + math.cos(math.radians(lat1)) * math.cos(math.radians(lat2)) * math.sin(d_lon / 2) ** 2
    )
    return EARTH_RADIUS_KM * 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))


class SalonService:
    def __init__(self, store):
        self.store = store

    def _get(self, salon_id):
        salon = get_by_id(self.store.salons, salon_id)
        if not salon:
            raise NotFound("Salon not found", reason="salon")
        return salon

    def register_lead(self, lead) -> dict:
        if self.store.salons.find_one({"mobile": lead.mobile}):
            raise Conflict("Salon with this mobile number already exists.", reason="salon-exists")
        doc = lead.model_dump()
        doc.update({
            # Queda pendiente hasta que un admin lo apruebe
            "status": SalonStatus.pending.value,
            "latitude": None,
            "longitude": None,
            "reviews": [],
            "createdAt": datetime.now(timezone.utc),
        })
        try:
            insert_document(self.store.salons, doc)
        except DuplicateKeyError:
            raise Conflict("Salon with this mobile number already exists.", reason="salon-exists")
        logger.info(f"Salón registrado: {doc['salonName']} ({doc['_id']})")
        return to_json(doc)

    def get_salon(self, salon_id) -> dict:
        return to_json(self._get(salon_id))

    def list_salons(self, status=None):
        query = {}
        if status:
            if status not in [s.value for s in SalonStatus]:
                raise ValidationError("Invalid status. Use 'pending' or 'approved'.", reason="invalid-status")
            query["status"] = status
        return [to_json(s) for s in self.store.salons.find(query)]

    def update_salon(self, salon_id, changes) -> dict:
        salon = self._get(salon_id)
        data = changes.model_dump(exclude_none=True)

        if "email" in data and data["email"] != salon.get("email"):
            other = self.store.salons.find_one({"email": data["email"], "_id": {"$ne": salon["_id"]}})
            if other:
                raise Conflict("This email is already used by another salon.", reason="email-taken")
        if "mobile" in data and data["mobile"] != salon.get("mobile"):
            if self.store.salons.find_one({"mobile": data["mobile"], "_id": {"$ne": salon["_id"]}}):
                raise Conflict("Salon with this mobile number already exists.", reason="salon-exists")

        if data.get("locationMapUrl"):
            lat, lng = extract_lat_lng(data["locationMapUrl"])
            data["latitude"] = lat
            data["longitude"] = lng

        # La aprobación se mantiene; un salón pendiente sigue pendiente
        update_document(self.store.salons, salon_id, data)
        return self.get_salon(salon_id)

    def approve_salon(self, salon_id) -> dict:
        salon = self._get(salon_id)
        if not salon.get("salonAddress") or salon.get("latitude") is None or salon.get("longitude") is None:
            raise ValidationError("Complete all required details before approval.", reason="incomplete-salon")
        update_document(self.store.salons, salon_id, {"status": SalonStatus.approved.value})
        logger.info(f"Salón aprobado: {salon_id}")
        return self.get_salon(salon_id)

    def nearby_salons(self, latitude, longitude):
        located = list(self.store.salons.find({
            "latitude": {"$ne": None},
            "longitude": {"$ne": None},
        }))
        for salon in located:
            salon["distance"] = haversine_km(latitude, longitude, salon["latitude"], salon["longitude"])

        # Se amplía el radio hasta encontrar algo
        for radius in SEARCH_RADII_KM:
            found = sorted((s for s in located if s["distance"] <= radius), key=lambda s: s["distance"])
            if found:
                logger.info(f"{len(found)} salones dentro de {radius} km")
                return [to_json(s) for s in found]
        raise NotFound("No salons found.", reason="salon")

    def top_reviewed(self, limit=5):
        salons = [s for s in self.store.salons.find() if s.get("reviews")]
        salons.sort(key=lambda s: len(s.get("reviews", [])), reverse=True)
        if not salons:
            raise NotFound("No reviewed salons found.", reason="salon")
        return [to_json(s) for s in salons[:limit]]

    def user_reviews(self, user_id):
        """Reseñas de un usuario en todos los salones, la más reciente primero."""
        reviews = []
        for salon in self.store.salons.find({"reviews.userId": user_id}):
            for review in salon.get("reviews", []):
                if review.get("userId") == user_id:
                    reviews.append(dict(review, salonId=salon["_id"], salonName=salon.get("salonName")))
        reviews.sort(key=lambda r: r["createdAt"], reverse=True)
        return [to_json(r) for r in reviews]

    def add_review(self, salon_id, review, db_sql) -> dict:
        user = db_sql.query(UserSQL).filter(UserSQL.phone == review.phone).first()
        if not user:
            raise NotFound("User not found.", reason="user")
        oid = parse_object_id(salon_id)
        entry = {
            "userId": user.id,
            "rating": review.rating,
            "comment": review.comment,
            "createdAt": datetime.now(timezone.utc),
        }
        result = self.store.salons.update_one({"_id": oid}, {"$push": {"reviews": entry}}) if oid else None
        if result is None or result.matched_count == 0:
            raise NotFound("Salon not found", reason="salon")
        return self.get_salon(salon_id)
