#  This file contains the Flask views exposing the registered resource types:
#  - CollectionAPI         GET /<type>
#  - InstanceAPI           GET /<type>/<id>
#  - RelationshipAPI       GET, PATCH, POST, DELETE /<type>/<id>/relationships/<relationship>
#  - RelatedAPI            GET /<type>/<id>/<relationship>[/<member_id>]
#
#  The views only translate between HTTP and the document builder / relationship mutator,
#  errors raised while handling a request are rendered as a json:api errors document.
#
# pylint: disable=arguments-differ
from typing import Any, Dict, Optional
from flask import Blueprint, jsonify, make_response as flask_make_response, request
from flask.views import MethodView
from http import HTTPStatus
import resdoc
from .config import get_config
from .document import Document, DocumentBuilder
from .errors import JsonapiError, JsonapiException
from .mutator import RelationshipMutator
from .request import parse_query
from .resource import Registry, ResourceType

JSONAPI_CONTENT_TYPE = "application/vnd.api+json"


def make_response(document: Document):
    """
    Customized flask make_response
    """
    if document.body is None:
        response = flask_make_response("", document.status)
    else:
        response = flask_make_response(jsonify(document.body), document.status)
    response.headers.update(document.headers)
    if getattr(request, "is_jsonapi", False):
        # Only use "application/vnd.api+json" if the client sent this with the request
        response.headers["Content-Type"] = JSONAPI_CONTENT_TYPE
    return response


def handle_jsonapi_exception(exc: JsonapiException):
    return make_response(Document.from_errors(exc.errors))


class Resource(MethodView):
    """
    Superclass for the exposed endpoints
    """

    def __init__(self, registry: Registry, extension: Any = None) -> None:
        self.registry = registry
        self.extension = extension
        self.config = get_config()

    @property
    def descriptor(self):
        result = getattr(request, "query_descriptor", None)
        if result is None:
            result = parse_query(request.args)
        return result

    def resource_type(self, type_name: str) -> ResourceType:
        result = self.registry.get(type_name)
        if result is None:
            resdoc.log.warning(f"Unknown resource type {type_name}")
            raise JsonapiError(code="not_found", config=self.config).with_header(status=HTTPStatus.NOT_FOUND)
        return result

    def get_instance(self, type_name: str, object_id: str) -> Any:
        resource_type = self.resource_type(type_name)
        instance = resource_type.find(object_id)
        if instance is None:
            raise JsonapiError(
                controller="resources", action="show", code="not_found", t={"type": type_name, "id": object_id}, config=self.config
            ).with_header(status=HTTPStatus.NOT_FOUND)
        return instance

    def meta(self, resource_type: ResourceType) -> Dict[str, Any]:
        """
        :return: the meta contributed by the before_query hooks
        """
        meta: Dict[str, Any] = {}
        if self.extension is not None:
            self.extension.contribute_meta(meta, resource_type)
        return meta

    @property
    def builder(self) -> DocumentBuilder:
        return DocumentBuilder(self.registry, self.config)

    @property
    def mutator(self) -> RelationshipMutator:
        return RelationshipMutator(self.registry, self.config)

    def payload(self) -> Any:
        get_payload = getattr(request, "get_jsonapi_payload", None)
        if get_payload is not None:
            return get_payload()
        return request.get_json(silent=True) or {}


class CollectionAPI(Resource):
    def get(self, type_name: str):
        """
        HTTP GET: the (filtered, sorted, paginated) collection
        """
        resource_type = self.resource_type(type_name)
        document = self.builder.build_collection(resource_type, self.descriptor, self.meta(resource_type), request.base_url, request.args)
        return make_response(document)


class InstanceAPI(Resource):
    def get(self, type_name: str, object_id: str):
        """
        HTTP GET: a single resource
        """
        resource_type = self.resource_type(type_name)
        document = self.builder.build_resource(resource_type, object_id, self.descriptor, self.meta(resource_type))
        return make_response(document)


class RelationshipAPI(Resource):
    """
    relationships/<relationship> endpoints: the relationship linkage
    """

    def get(self, type_name: str, object_id: str, relationship: str):
        instance = self.get_instance(type_name, object_id)
        meta = self.meta(self.registry.type_of(instance))
        return make_response(self.mutator.get(instance, relationship, self.descriptor, meta))

    def patch(self, type_name: str, object_id: str, relationship: str):
        instance = self.get_instance(type_name, object_id)
        return make_response(self.mutator.replace(instance, relationship, self.payload()))

    def post(self, type_name: str, object_id: str, relationship: str):
        instance = self.get_instance(type_name, object_id)
        return make_response(self.mutator.append(instance, relationship, self.payload()))

    def delete(self, type_name: str, object_id: str, relationship: str):
        instance = self.get_instance(type_name, object_id)
        return make_response(self.mutator.remove(instance, relationship, self.payload()))


class RelatedAPI(Resource):
    """
    <relationship>[/<member_id>] endpoints: the related resources
    """

    def get(self, type_name: str, object_id: str, relationship: str, member_id: Optional[str] = None):
        instance = self.get_instance(type_name, object_id)
        meta = self.meta(self.registry.type_of(instance))
        document = self.builder.build_related(
            instance, relationship, self.descriptor, member_id=member_id, meta=meta, base_url=request.base_url, args=request.args
        )
        return make_response(document)


def create_blueprint(registry: Registry, extension: Any = None, name: str = "resdoc", url_prefix: str = "") -> Blueprint:
    """
    :param registry: Registry with the exposed resource types
    :param extension: RESDOC instance providing the meta hooks
    :return: flask Blueprint with the json:api endpoints
    """
    blueprint = Blueprint(name, __name__, url_prefix=url_prefix or None)
    view_args = (registry, extension)

    blueprint.add_url_rule("/<type_name>", view_func=CollectionAPI.as_view("collection", *view_args))
    blueprint.add_url_rule("/<type_name>/<object_id>", view_func=InstanceAPI.as_view("instance", *view_args))
    blueprint.add_url_rule(
        "/<type_name>/<object_id>/relationships/<relationship>",
        view_func=RelationshipAPI.as_view("relationship_definition", *view_args),
        methods=["GET", "PATCH", "POST", "DELETE"],
    )
    related_view = RelatedAPI.as_view("relationship_data", *view_args)
    blueprint.add_url_rule("/<type_name>/<object_id>/<relationship>", view_func=related_view)
    blueprint.add_url_rule("/<type_name>/<object_id>/<relationship>/<member_id>", view_func=related_view)
    blueprint.register_error_handler(JsonapiException, handle_jsonapi_exception)
    return blueprint
