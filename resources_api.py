# resources_api.py
from decimal import Decimal, InvalidOperation

from flask import Blueprint, jsonify, abort, request
from flask_login import current_user
from sqlalchemy import func, or_

from models import db, User, Resource, ResourceCategory, ResourceLog
from forms import json_form, ResourceCategoryForm
from access import role_required, json_body, to_int, clamp, clean_text, form_error, MANAGERS, EVERYONE
from timeutil import parse_iso_date
from logger import get_logger

logger = get_logger(__name__)

resources_bp = Blueprint("resources_api", __name__)

RESOURCE_STATUSES = ("available", "in_use", "maintenance", "retired", "lost")
LOG_KINDS = ("assign", "check_out", "check_in", "move", "repair", "note", "retire")


def _text(max_len):
    def parse(value):
        return clean_text(value, max_len) or None
    return parse


# json key -> (column, parser)
FIELD_PARSERS = {
    "name": ("name", _text(255)),
    "assetTag": ("asset_tag", _text(80)),
    "categoryId": ("category_id", to_int),
    "type": ("type", _text(80)),
    "serialNo": ("serial_no", _text(120)),
    "vendor": ("vendor", _text(120)),
    "purchaseDate": ("purchase_date", parse_iso_date),
    "warrantyEnd": ("warranty_end", parse_iso_date),
    "building": ("building", _text(120)),
    "room": ("room", _text(120)),
    "notes": ("notes", _text(4000)),
}


def _parse_cost(value):
    if value in (None, ""):
        return None
    try:
        return Decimal(str(value))
    except InvalidOperation:
        abort(400, description="Invalid cost")


def _check_asset_tag(resource, tag):
    if tag is None:
        return
    with db.session.no_autoflush:
        other = Resource.query.filter(Resource.asset_tag == tag).first()
    if other is not None and other is not resource:
        abort(409, description="Asset tag already exists")


def apply_fields(resource, item):
    if "assetTag" in item:
        _check_asset_tag(resource, FIELD_PARSERS["assetTag"][1](item.get("assetTag")))
    for key, (column, parser) in FIELD_PARSERS.items():
        if key in item:
            setattr(resource, column, parser(item.get(key)))
    if "cost" in item:
        resource.cost = _parse_cost(item.get("cost"))
    if "status" in item:
        if item["status"] not in RESOURCE_STATUSES:
            abort(400, description="Invalid status")
        resource.status = item["status"]
    if "assignedTo" in item:
        assignee = to_int(item.get("assignedTo"))
        if assignee is not None and db.session.get(User, assignee) is None:
            abort(400, description="Assigned user not found")
        resource.assigned_to_id = assignee
    if "tags" in item:
        tags = item.get("tags") or []
        if not isinstance(tags, list):
            abort(400, description="tags must be an array")
        resource.tags = [clean_text(t, 40) for t in tags if clean_text(t, 40)]
    if resource.category_id is not None and db.session.get(ResourceCategory, resource.category_id) is None:
        abort(400, description="Category not found")


@resources_bp.get("/api/managers/resources")
@role_required(*MANAGERS)
def list_resources():
    page = max(1, to_int(request.args.get("page"), 1))
    page_size = clamp(to_int(request.args.get("pageSize"), 20), 10, 100)
    query = clean_text(request.args.get("query"), 120)

    q = Resource.query
    if query:
        like = f"%{query.lower()}%"
        q = q.filter(or_(
            func.lower(Resource.name).like(like),
            func.lower(Resource.asset_tag).like(like),
            func.lower(Resource.serial_no).like(like),
        ))
    if request.args.get("status"):
        q = q.filter(Resource.status == request.args["status"])
    if to_int(request.args.get("category")) is not None:
        q = q.filter(Resource.category_id == to_int(request.args["category"]))
    if request.args.get("building"):
        q = q.filter(Resource.building == request.args["building"])

    total = q.count()
    rows = q.order_by(Resource.name.asc(), Resource.id.asc()).offset((page - 1) * page_size).limit(page_size).all()
    return jsonify({
        "resources": [r.to_dict() for r in rows],
        "total": total,
        "page": page,
        "pageSize": page_size,
    })


@resources_bp.post("/api/managers/resources")
@role_required(*MANAGERS)
def create_resources():
    data = request.get_json(silent=True)
    items = data if isinstance(data, list) else [data] if isinstance(data, dict) else []
    if not items:
        abort(400, description="Resource payload is required")

    created = []
    tags = set()
    for item in items:
        if not isinstance(item, dict) or not clean_text(item.get("name"), 255):
            abort(400, description="Each resource needs a name")
        tag = clean_text(item.get("assetTag"), 80)
        if tag and tag in tags:
            abort(409, description="Asset tag already exists")
        tags.add(tag)
        resource = Resource(status="available")
        apply_fields(resource, item)
        db.session.add(resource)
        created.append(resource)
    db.session.commit()
    logger.info("%s resources created by %s", len(created), current_user.id)
    return jsonify({"resources": [r.to_dict() for r in created]}), 201


@resources_bp.patch("/api/managers/resources")
@role_required(*MANAGERS)
def batch_update_resources():
    data = json_body()
    updates = data.get("updates") if isinstance(data, dict) else None
    if not isinstance(updates, list) or not updates:
        abort(400, description="updates must be a non-empty array")

    updated = []
    tags = set()
    for item in updates:
        if not isinstance(item, dict) or to_int(item.get("id")) is None:
            continue
        tag = clean_text(item.get("assetTag"), 80)
        if tag and tag in tags:
            abort(409, description="Asset tag already exists")
        tags.add(tag)
        resource = db.session.get(Resource, to_int(item["id"]))
        if resource is None:
            continue
        if "name" in item and not clean_text(item.get("name"), 255):
            abort(400, description="Name cannot be empty")
        apply_fields(resource, item)
        updated.append(resource)
    db.session.commit()
    return jsonify({"resources": [r.to_dict() for r in updated]})


@resources_bp.get("/api/managers/resources/<int:resource_id>")
@role_required(*MANAGERS)
def get_resource(resource_id):
    resource = db.get_or_404(Resource, resource_id, description="Resource not found")
    payload = resource.to_dict()
    payload["logs"] = [log.to_dict() for log in resource.logs]
    return jsonify({"resource": payload})


@resources_bp.post("/api/managers/resources/<int:resource_id>/logs")
@role_required(*MANAGERS)
def add_resource_log(resource_id):
    resource = db.get_or_404(Resource, resource_id, description="Resource not found")
    data = json_body()
    kind = data.get("kind")
    if not kind:
        abort(400, description="kind is required")
    if kind not in LOG_KINDS:
        abort(400, description="Invalid kind")

    to_user_id = to_int(data.get("toUserId"))
    if kind in ("assign", "check_out"):
        if to_user_id is None or db.session.get(User, to_user_id) is None:
            abort(400, description="toUserId is required")
        resource.assigned_to_id = to_user_id
        if "status" not in data:
            resource.status = "in_use"
    elif kind == "check_in":
        resource.assigned_to_id = None
        if "status" not in data:
            resource.status = "available"
    elif kind == "retire" and "status" not in data:
        resource.status = "retired"

    patch = {k: data[k] for k in ("status", "building", "room") if k in data}
    if patch:
        apply_fields(resource, patch)

    log = ResourceLog(resource_id=resource.id, kind=kind, by_user_id=current_user.id,
                      to_user_id=to_user_id, notes=clean_text(data.get("notes"), 2000) or None)
    db.session.add(log)
    db.session.commit()
    return jsonify({"log": log.to_dict(), "resource": resource.to_dict()}), 201


@resources_bp.get("/api/managers/resources/categories")
@role_required(*EVERYONE)
def list_categories():
    rows = ResourceCategory.query.order_by(ResourceCategory.name.asc()).all()
    return jsonify({"categories": [c.to_dict() for c in rows]})


@resources_bp.post("/api/managers/resources/categories")
@role_required(*MANAGERS)
def create_category():
    form = json_form(ResourceCategoryForm, json_body())
    if not form.validate():
        abort(400, description=form_error(form))
    parent_id = form.parent_id.data
    if parent_id is not None and db.session.get(ResourceCategory, parent_id) is None:
        abort(400, description="Parent category not found")
    category = ResourceCategory(
        name=clean_text(form.name.data, 120),
        parent_id=parent_id,
        description=clean_text(form.description.data, 1000) or None,
    )
    db.session.add(category)
    db.session.commit()
    return jsonify({"category": category.to_dict()}), 201
