"""Postman Collection v2.x parser.

Parses Postman exported JSON files into a Collection of endpoints.
Collection variables are substituted where defined; unknown ``{{var}}``
references are kept as written.
"""

import json
import re
from pathlib import Path

from api_tester.errors import InputParseError
from api_tester.models import Collection, Endpoint

_VARIABLE = re.compile(r"\{\{([^}]+)\}\}")


def parse_postman(file_path: Path) -> Collection:
    """Parse a Postman Collection file into a Collection."""
    text = file_path.read_text(encoding="utf-8")
    try:
        collection = json.loads(text)
    except json.JSONDecodeError as e:
        raise InputParseError(f"Invalid JSON: {e.msg} (line {e.lineno})", source=str(file_path)) from e
    return postman_collection(collection)


def postman_collection(collection: dict) -> Collection:
    variables = {v["key"]: str(v.get("value", "")) for v in collection.get("variable", []) if "key" in v}
    global_headers = _auth_headers(collection.get("auth"))

    endpoints: list[Endpoint] = []
    _parse_items(collection.get("item", []), endpoints, variables, global_headers)
    return Collection(name=collection.get("info", {}).get("name", ""), endpoints=endpoints)


def _parse_items(
    items: list[dict],
    endpoints: list[Endpoint],
    variables: dict[str, str],
    global_headers: dict[str, str],
    folder: str = "",
) -> None:
    """Recursively parse items (supports folders)."""
    for item in items:
        if "request" in item:
            endpoints.append(_parse_request(item, variables, global_headers, folder))
        elif "item" in item:
            _parse_items(item["item"], endpoints, variables, global_headers, item.get("name", ""))


def _parse_request(item: dict, variables: dict[str, str], global_headers: dict[str, str], folder: str) -> Endpoint:
    req = item["request"]
    if isinstance(req, str):
        req = {"method": "GET", "url": req}
    url = req.get("url", "")
    if isinstance(url, dict):
        url = url.get("raw", "")

    headers = dict(global_headers)
    for h in req.get("header", []):
        if not h.get("disabled") and h.get("key") and h.get("value"):
            headers[h["key"]] = _resolve(h["value"], variables)

    name = item.get("name", "")
    description = req.get("description", "")
    if isinstance(description, dict):
        description = description.get("content", "")

    return Endpoint(
        name=f"{folder} / {name}" if folder else name,
        method=req.get("method", "GET"),
        url=_resolve(url, variables),
        headers=headers,
        body=_parse_body(req.get("body"), variables),
        description=description or "",
    )


def _parse_body(body: dict | None, variables: dict[str, str]) -> str | None:
    if not body:
        return None
    if body.get("mode") == "raw" and body.get("raw"):
        return _resolve(body["raw"], variables)
    if body.get("mode") in ("formdata", "urlencoded"):
        fields = body.get(body["mode"]) or []
        form = {f["key"]: _resolve(str(f.get("value", "")), variables) for f in fields if "key" in f}
        return json.dumps(form, indent=2, ensure_ascii=False)
    return None


def _auth_headers(auth: dict | None) -> dict[str, str]:
    if not auth:
        return {}
    kind = auth.get("type")
    if kind == "bearer":
        return {"Authorization": "Bearer {{token}}"}
    if kind == "basic":
        return {"Authorization": "Basic {{base64_encoded_credentials}}"}
    if kind == "apikey":
        # v2.1 stores apikey settings as a list of {key, value} pairs
        settings = {s.get("key"): s.get("value") for s in auth.get("apikey", []) if isinstance(s, dict)}
        if settings.get("in", "header") == "header" and settings.get("key"):
            return {settings["key"]: "{{apiKey}}"}
    return {}


def _resolve(text: str, variables: dict[str, str]) -> str:
    return _VARIABLE.sub(lambda m: variables.get(m.group(1).strip(), m.group(0)), text)
