# resdoc to json encoding

import datetime
import decimal
from uuid import UUID
from flask.json.provider import DefaultJSONProvider
import resdoc
from .document import Document


def _default(obj):
    """
    override the default json encoding
    :param obj: object to be encoded
    :return: encoded/serialized object
    """
    if isinstance(obj, Document):
        return obj.to_dict()
    if isinstance(obj, datetime.timedelta):
        return str(obj)
    if isinstance(obj, datetime.datetime):
        return obj.isoformat(" ")
    if isinstance(obj, (datetime.date, datetime.time)):
        return obj.isoformat()
    if isinstance(obj, set):
        return list(obj)
    if isinstance(obj, UUID):
        return str(obj)
    if isinstance(obj, decimal.Decimal):
        return float(obj)
    if isinstance(obj, bytes):
        if obj == b"":
            return ""
        resdoc.log.debug("ResdocJSONProvider: serializing bytes obj")
        return obj.hex()
    return DefaultJSONProvider.default(obj)


class ResdocJSONProvider(DefaultJSONProvider):
    """
    JSON encoding for resdoc documents and common attribute types
    """

    default = staticmethod(_default)
    sort_keys = False
