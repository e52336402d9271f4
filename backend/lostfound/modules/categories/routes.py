from flask import Blueprint, jsonify

from ...apis.v1.deps import categories, current_identity, request_data
from ...schemas import load
from ...schemas.category import CategorySchema

bp = Blueprint("categories", __name__, url_prefix="/categories")

category_schema = CategorySchema()


@bp.get("")
def list_categories():
    return jsonify({"categories": CategorySchema(many=True).dump(categories().list())})


@bp.get("/<category_id>")
def get_category(category_id: str):
    return jsonify({"category": category_schema.dump(categories().get(category_id))})


@bp.post("")
def create_category():
    data = load(category_schema, request_data())
    category = categories().create(current_identity(), data["name"])
    return jsonify({"category": category_schema.dump(category), "message": "Category created"}), 201


@bp.put("/<category_id>")
def update_category(category_id: str):
    data = load(category_schema, request_data())
    category = categories().update(current_identity(), category_id, data["name"])
    return jsonify({"category": category_schema.dump(category), "message": "Category updated"})


@bp.delete("/<category_id>")
def delete_category(category_id: str):
    categories().delete(current_identity(), category_id)
    return jsonify({"message": "Category deleted"})
