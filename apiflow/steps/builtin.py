"""
Built-in step implementations

Every step has the same shape: async (fields, env, ctx) -> value. The engine
binds the returned value to the step's output variable; a step fails by
raising a StepError subclass.
"""

from typing import Any, Dict, List, Mapping, Optional
import logging
import math

from ..engine.resolver import FULL_TEMPLATE_PATTERN, resolve, resolve_fields, resolve_value
from ..errors import (
    AuthError, EmailError, EmptyDocumentError, NotFoundModelError,
    StepError, ValidationError
)
from .context import StepContext

logger = logging.getLogger(__name__)

Fields = Dict[str, Any]
Env = Dict[str, Any]


def _require_collection(fields: Fields, ctx: StepContext) -> str:
    collection = fields.get("collection")
    if not collection or not ctx.store.has_collection(collection):
        raise NotFoundModelError(collection, ctx.store.collections())
    return collection


def _is_many(value: Optional[str]) -> bool:
    return value in ("many", "findMany", "updateMany", "deleteMany")


async def collect_input(fields: Fields, env: Env, ctx: StepContext) -> Dict[str, Any]:
    """Fill declared input variables the caller did not supply with their defaults."""
    current = dict(env.get("input") or {})
    variables = fields.get("variables")
    if not isinstance(variables, list):
        return current

    for variable in variables:
        if not isinstance(variable, Mapping) or not isinstance(variable.get("name"), str):
            continue
        name = variable["name"].strip()
        if name and name not in current:
            current[name] = variable.get("default")
    return current


def _type_error(value: Any, expected: Optional[str]) -> Optional[str]:
    if expected == "number":
        if isinstance(value, bool):
            return "Expected number"
        if isinstance(value, str):
            # A blank string counts as zero; "required" is what rejects it
            if not value.strip():
                return None
            try:
                value = float(value)
            except ValueError:
                return "Expected number"
        if isinstance(value, int) or (isinstance(value, float) and math.isfinite(value)):
            return None
        return "Expected number"

    if expected == "string" and not isinstance(value, str):
        return "Expected string"

    if expected == "boolean" and not isinstance(value, bool):
        return "Expected boolean"

    return None


async def validate_input(fields: Fields, env: Env, ctx: StepContext) -> bool:
    """
    Check each rule's field against the environment and aggregate failures.

    A field that fails `required` is not type-checked as well.
    """
    errors: Dict[str, List[str]] = {}

    for rule in fields.get("rules") or []:
        field = rule.get("field") or ""
        full = FULL_TEMPLATE_PATTERN.match(field)
        path = full.group(1).strip() if full else field
        value = resolve(env, path)

        if rule.get("required") and (value is None or value == ""):
            errors.setdefault(field, []).append("Field is required")
            continue

        if value is not None:
            type_error = _type_error(value, rule.get("type"))
            if type_error:
                errors.setdefault(field, []).append(type_error)

    if errors:
        raise ValidationError(errors)
    return True


async def find_documents(fields: Fields, env: Env, ctx: StepContext) -> Any:
    collection = _require_collection(fields, ctx)
    filters = resolve_fields(env, fields.get("filters"))

    if _is_many(fields.get("findType")):
        return await ctx.store.find_many(collection, filters)
    return await ctx.store.find_one(collection, filters)


async def insert_document(fields: Fields, env: Env, ctx: StepContext) -> Dict[str, Any]:
    """Create one document; a truthy password field is hashed before it is stored."""
    collection = _require_collection(fields, ctx)
    data = resolve_fields(env, fields.get("data"))

    if not data:
        raise EmptyDocumentError(collection)

    if data.get("password"):
        if ctx.hasher is None:
            raise StepError("No password hasher configured")
        data["password"] = ctx.hasher.hash(data["password"])

    return await ctx.store.create(collection, data)


async def update_documents(fields: Fields, env: Env, ctx: StepContext) -> Any:
    collection = _require_collection(fields, ctx)
    filters = resolve_fields(env, fields.get("filters", fields.get("filter")))
    patch = resolve_fields(env, fields.get("update", fields.get("data")))

    if _is_many(fields.get("updateType")):
        return await ctx.store.update_many(collection, filters, patch)
    return await ctx.store.find_one_and_update(collection, filters, patch)


async def delete_documents(fields: Fields, env: Env, ctx: StepContext) -> Dict[str, int]:
    collection = _require_collection(fields, ctx)
    filters = resolve_fields(env, fields.get("filters", fields.get("filter")))

    if _is_many(fields.get("deleteType")):
        return await ctx.store.delete_many(collection, filters)
    return await ctx.store.delete_one(collection, filters)


async def authenticate(fields: Fields, env: Env, ctx: StepContext) -> Dict[str, Any]:
    """Verify the request's bearer token and return its claims."""
    header = ctx.header("authorization")
    if not header or not str(header).startswith("Bearer "):
        raise AuthError("Missing or invalid Authorization header")

    if ctx.verifier is None:
        raise AuthError("No auth verifier configured")

    token = str(header)[len("Bearer "):].strip()
    return ctx.verifier.verify(token)


async def send_email(fields: Fields, env: Env, ctx: StepContext) -> Dict[str, Any]:
    to = resolve_value(env, fields.get("to"))
    subject = resolve_value(env, fields.get("subject"))
    body = resolve_value(env, fields.get("body"))

    if not to or not subject or not body:
        raise EmailError("Email resolution failed: missing required fields (to, subject, or body)")

    if ctx.mailer is None:
        raise EmailError("No email transport configured")

    try:
        result = await ctx.mailer.send(to=str(to), subject=str(subject), body=str(body))
    except EmailError:
        raise
    except Exception as e:
        raise EmailError(f"Email sending failed: {e}")

    if not result or not result.get("success"):
        raise EmailError((result or {}).get("error") or "Email sending failed")

    return {"success": True, "messageId": result.get("messageId")}


async def login_user(fields: Fields, env: Env, ctx: StepContext) -> Dict[str, Any]:
    """
    Check email/password against a user collection.

    Never fails the execution; the outcome is reported through `ok` so a
    later step can branch its response on it.
    """
    email = resolve_value(env, fields.get("email"))
    password = resolve_value(env, fields.get("password"))
    collection = fields.get("collection") or "users"

    if not email or not password:
        return {"ok": False, "error": "Missing email or password"}

    if not ctx.store.has_collection(collection):
        return {"ok": False, "error": f"{collection} model not found"}

    user = await ctx.store.find_one(collection, {"email": email})
    if user is None:
        return {"ok": False, "error": "User not found"}

    if ctx.hasher is None or not ctx.hasher.verify(password, user.get("password") or ""):
        return {"ok": False, "error": "Invalid password"}

    return {
        "ok": True,
        "userId": user.get("_id"),
        "email": user.get("email"),
        "name": user.get("name"),
    }
