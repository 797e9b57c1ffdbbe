from datetime import datetime

from bson import ObjectId, errors


def to_json(document):
    """
    Convierte un documento de MongoDB a diccionario serializable a JSON.
    ObjectId pasa a string y datetime a ISO 8601, también en listas y subdocumentos.
    """
    if not document:
        return {}
    return {key: _to_json_value(value) for key, value in document.items()}


def _to_json_value(value):
    if isinstance(value, ObjectId):
        return str(value)
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, dict):
        return to_json(value)
    if isinstance(value, list):
        return [_to_json_value(v) for v in value]
    return value


def parse_object_id(id):
    """Retorna el ObjectId o None si el texto no es un id válido."""
    try:
        return ObjectId(id)
    except (errors.InvalidId, TypeError):
        return None


def get_by_id(collection, id):
    """
    Obtiene un documento por su ObjectId.
    Retorna None si el ID no es válido o no se encuentra.
    """
    oid = parse_object_id(id)
    if oid is None:
        return None
    return collection.find_one({"_id": oid})


def insert_document(collection, data):
    """
    Inserta un documento en la colección y retorna el ID insertado como string.
    """
    result = collection.insert_one(data)
    return str(result.inserted_id)


def update_document(collection, id, update_data):
    """
    Actualiza un documento por su ObjectId.
    Retorna el número de documentos encontrados (0 o 1).
    """
    oid = parse_object_id(id)
    if oid is None:
        return 0
    result = collection.update_one({"_id": oid}, {"$set": update_data})
    return result.matched_count
