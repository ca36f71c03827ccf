# Error Model
#
# Errors are raised where they're detected and rendered as a json:api errors document:
# {
#     "errors": [
#         {
#             "code": "not_found",
#             "field": "data",
#             "message": "Data could not be found",
#             "source": {"pointer": "/data"}
#         }
#     ]
# }
#
# The message is looked up in the message catalog, from the most specific key
# to the most general one, eg. for model "comment", field "body" and code "blank":
#   resdoc.models.comment.body.blank
#   resdoc.models.comment.blank
#   resdoc.field.blank
#   resdoc.blank
# If none of the keys is set, the code itself is used as message.
#
import re
from http import HTTPStatus
from typing import Any, Dict, Iterable, List, Optional, Union
import resdoc
from .config import Config, get_config
from .messages import resolve

# fields that can be translated to a json pointer, "data.type" => "/data/type"
POINTER_FIELD_RE = re.compile(r"^[\w.]+$")


def titleize(field: Any) -> str:
    """
    "order_items.amount" => "Order Items.Amount"
    """
    if field is None:
        return ""
    return str(field).replace("_", " ").title()


def to_status(status: Union[HTTPStatus, int, str]) -> HTTPStatus:
    """
    :param status: HTTPStatus, status code or status name (eg. "not_found")
    :return: HTTPStatus
    """
    if isinstance(status, str) and not status.isdigit():
        return HTTPStatus[status.upper()]
    return HTTPStatus(int(status))


def to_header_name(name: str) -> str:
    """
    "retry_after" => "Retry-After"
    """
    return "-".join(part.capitalize() for part in name.replace("_", "-").split("-"))


class JsonapiException(Exception):
    """
    Base class for the raised json:api errors
    """

    @property
    def errors(self) -> List["JsonapiError"]:
        return []

    @property
    def status(self) -> HTTPStatus:
        """
        When the errors carry different statuses, the status of the first error is used
        """
        errors = self.errors
        return errors[0].status if errors else HTTPStatus.BAD_REQUEST

    @property
    def headers(self) -> Dict[str, str]:
        result: Dict[str, str] = {}
        for error in self.errors:
            for name, value in error.headers.items():
                result.setdefault(name, value)
        return result

    def serialize(self) -> Dict[str, Any]:
        return {"errors": [error.serialize() for error in self.errors]}


class JsonapiError(JsonapiException):
    """
    A single error with a code, an optional field and a message resolved from the message catalog

    Should be used as such:
        raise JsonapiError(field="data", code="not_found").with_header(status=HTTPStatus.UNPROCESSABLE_ENTITY)
    """

    def __init__(
        self,
        model: Optional[str] = None,
        controller: Optional[str] = None,
        action: Optional[str] = None,
        field: Optional[str] = None,
        code: str = "invalid",
        t: Optional[Dict[str, Any]] = None,
        pointer: Optional[str] = None,
        resource_type: Any = None,
        config: Optional[Config] = None,
    ) -> None:
        """
        :param model: name of the model the error occurred on
        :param controller: name of the controller the error occurred in
        :param action: name of the controller action the error occurred in
        :param field: shallow ("password") or nested ("order_items.amount") name of the field
        :param code: error code
        :param t: interpolation variables for the message
        :param pointer: json pointer to the offending part of the request payload
        :param resource_type: ResourceType used to locate attribute and relationship fields
        :param config: Config, the current configuration is used if not set
        """
        super().__init__(code)
        self.model = model
        self.controller = controller
        self.action = action
        self.field = field
        self.code = code
        self._t = dict(t or {})
        self._pointer = pointer
        self.resource_type = resource_type
        self.config = config if config is not None else get_config()
        self.header: Dict[str, Any] = {"status": HTTPStatus.BAD_REQUEST}
        self._message: Optional[str] = None

    @property
    def errors(self) -> List["JsonapiError"]:
        return [self]

    @property
    def t(self) -> Dict[str, Any]:
        """
        The interpolation variables always contain the field and its title,
        these take precedence over the variables passed to the constructor
        """
        return dict(self._t, field=self.field, field_title=titleize(self.field))

    def message_keys(self) -> List[str]:
        """
        :return: the catalog keys to try, most specific first
        """
        scope = self.config.i18n_scope
        code = self.code
        field = self.field
        keys = []
        if self.model:
            model_scope = f"{scope}.models.{self.model}"
            if field:
                keys.append(f"{model_scope}.{field}.{code}")
            keys.append(f"{model_scope}.{code}")
            if field:
                keys.append(f"{scope}.field.{code}")
        elif self.controller and self.action:
            action_scope = f"{scope}.controllers.{self.controller}.{self.action}"
            if field:
                keys.append(f"{action_scope}.{field}.{code}")
            keys.append(f"{action_scope}.{code}")
        elif field:
            keys.append(f"{scope}.field.{code}")
        keys.append(f"{scope}.{code}")
        return keys

    @property
    def full_message(self) -> str:
        if self._message is None:
            variables = self.t
            for key in self.message_keys():
                message = resolve(self.config.message_catalog, key, variables)
                if message:
                    self._message = message
                    break
            else:
                self._message = str(self.code)
        return self._message

    message = full_message

    @property
    def pointer(self) -> Optional[str]:
        """
        :return: json pointer to the field that caused the error
        """
        if self._pointer is not None:
            return self._pointer
        if self.field is None:
            return None
        field = str(self.field)
        if not POINTER_FIELD_RE.match(field):
            # eg. a query parameter like "filter[name]"
            return None
        if self.resource_type is not None:
            if self.resource_type.is_attribute(field):
                return f"/data/attributes/{field}"
            if field in self.resource_type.relationships:
                return f"/data/relationships/{field}"
        return "/" + field.replace(".", "/")

    @property
    def status(self) -> HTTPStatus:
        return to_status(self.header.get("status", HTTPStatus.BAD_REQUEST))

    @property
    def headers(self) -> Dict[str, str]:
        """
        :return: the extra response headers, eg. {"Location": "/posts/1"}
        """
        return {to_header_name(name): str(value) for name, value in self.header.items() if name != "status"}

    def with_header(self, header: Optional[Dict[str, Any]] = None, **kwargs: Any) -> "JsonapiError":
        """
        Set the response status and headers when failing

        :param header: mapping with the "status" and the extra headers, eg. {"status": 201, "location": url}
        :return: self
        """
        self.header = dict(header or {}, **kwargs)
        self.header.setdefault("status", HTTPStatus.BAD_REQUEST)
        resdoc.log.debug(f"{self.code} error ({self.status.value}) for field {self.field}")
        return self

    def serialize(self) -> Dict[str, Any]:
        """
        :return: the serializable dict of the error
        """
        result: Dict[str, Any] = {
            "code": str(self.code),
            "field": None if self.field is None else str(self.field),
            "message": self.full_message,
        }
        pointer = self.pointer
        if pointer:
            result["source"] = {"pointer": pointer}
        return result

    def __str__(self) -> str:
        return self.full_message

    def __repr__(self) -> str:
        return f"<JsonapiError {self.code} field={self.field!r} status={self.status.value}>"


class JsonapiErrors(JsonapiException):
    """
    Several errors collected in the order they were detected
    """

    def __init__(self, errors: Iterable[JsonapiError]) -> None:
        self._errors = list(errors)
        super().__init__(", ".join(error.full_message for error in self._errors))

    @property
    def errors(self) -> List[JsonapiError]:
        return self._errors


def raise_errors(errors: List[JsonapiError]) -> None:
    """
    Raise the collected errors, if any
    """
    if len(errors) == 1:
        raise errors[0]
    if errors:
        raise JsonapiErrors(errors)


class UnregisteredResourceError(JsonapiError, TypeError):
    """
    Raised when an object without a registered ResourceType has to be serialized
    """

    def __init__(self, class_name: str, config: Optional[Config] = None) -> None:
        super().__init__(
            controller="resources", action="serialize", code="internal_error", t={"class_name": class_name}, pointer="", config=config
        )
        self.with_header(status=HTTPStatus.INTERNAL_SERVER_ERROR)
