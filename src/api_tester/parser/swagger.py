"""OpenAPI / Swagger document parser.

Parses OpenAPI 3.x and Swagger 2.0 documents into a Collection of endpoints.
Response schemas are collected into a catalog keyed by
``(METHOD, path, role)`` and attached to the endpoints as external schemas.
"""

import json
from pathlib import Path
from typing import Any

import yaml

from api_tester.errors import InputParseError
from api_tester.models import HTTP_METHODS, Collection, Endpoint, SchemaState
from api_tester.schema import synthesize

_MAX_REF_DEPTH = 20


def parse_openapi(file_path: Path) -> Collection:
    """Parse an OpenAPI/Swagger file into a Collection."""
    return openapi_collection(load_document(file_path))


def load_document(file_path: Path) -> dict:
    text = file_path.read_text(encoding="utf-8")
    try:
        doc = yaml.safe_load(text)
    except yaml.YAMLError as e:
        raise InputParseError(f"Invalid YAML/JSON: {e}", source=str(file_path)) from e
    if not isinstance(doc, dict):
        raise InputParseError("OpenAPI document must be a mapping", source=str(file_path))
    return doc


def openapi_collection(doc: dict) -> Collection:
    base_url = _base_url(doc)
    global_headers = _security_headers(doc)
    catalog = schema_catalog(doc)

    endpoints = []
    for path, methods in (doc.get("paths") or {}).items():
        for method, operation in (methods or {}).items():
            if method.upper() not in HTTP_METHODS or not isinstance(operation, dict):
                continue

            headers = dict(global_headers)
            for p in operation.get("parameters", []):
                p = _deref(doc, p)
                if p.get("in") == "header" and p.get("name"):
                    headers[p["name"]] = f"{{{p['name']}}}"

            endpoint = Endpoint(
                name=operation.get("summary") or f"{method.upper()} {path}",
                method=method,
                url=base_url + path,
                headers=headers,
                body=_request_body(doc, operation),
                description=operation.get("description", ""),
            )
            schema = synthesize("external", catalog=catalog, method=method, path=path)
            if schema is not None:
                endpoint = endpoint.model_copy(update={"response_schema": SchemaState.active(schema)})
            endpoints.append(endpoint)

    title = (doc.get("info") or {}).get("title", "")
    return Collection(name=title, endpoints=endpoints)


def schema_catalog(doc: dict) -> dict[tuple[str, str, str], Any]:
    """Response schemas by ``(METHOD, path, role)``.

    ``response`` is the first 2xx JSON schema of an operation, ``error`` the
    first 4xx/5xx one. Local ``$ref`` pointers are inlined.
    """
    catalog: dict[tuple[str, str, str], Any] = {}
    for path, methods in (doc.get("paths") or {}).items():
        for method, operation in (methods or {}).items():
            if method.upper() not in HTTP_METHODS or not isinstance(operation, dict):
                continue
            for status, resp in sorted((operation.get("responses") or {}).items(), key=lambda kv: str(kv[0])):
                schema = _response_schema(doc, _deref(doc, resp))
                if schema is None:
                    continue
                role = "response" if str(status).startswith("2") else "error" if str(status)[:1] in "45" else None
                if role and (method.upper(), path, role) not in catalog:
                    catalog[(method.upper(), path, role)] = inline_refs(doc, schema)
    return catalog


def inline_refs(doc: dict, schema: Any, depth: int = 0) -> Any:
    """Replace local ``$ref`` pointers with their targets; recursion is cut at a fixed depth."""
    if depth > _MAX_REF_DEPTH:
        return {}
    if isinstance(schema, dict):
        if "$ref" in schema:
            return inline_refs(doc, _deref(doc, schema), depth + 1)
        return {k: inline_refs(doc, v, depth + 1) for k, v in schema.items()}
    if isinstance(schema, list):
        return [inline_refs(doc, v, depth + 1) for v in schema]
    return schema


def example_from_schema(schema: Any, doc: dict | None = None, depth: int = 0) -> Any:
    """Build a sample value from a schema, preferring declared examples."""
    if doc is not None:
        schema = _deref(doc, schema)
    if not isinstance(schema, dict) or depth > _MAX_REF_DEPTH:
        return {}
    if "example" in schema:
        return schema["example"]
    kind = schema.get("type")
    if isinstance(schema.get("properties"), dict) and kind in (None, "object"):
        return {k: example_from_schema(v, doc, depth + 1) for k, v in schema["properties"].items()}
    if kind == "array" and "items" in schema:
        return [example_from_schema(schema["items"], doc, depth + 1)]
    if kind == "string":
        return "user@example.com" if schema.get("format") == "email" else "string"
    if kind in ("number", "integer"):
        return 0
    if kind == "boolean":
        return True
    return None


def _request_body(doc: dict, operation: dict) -> str | None:
    body = _deref(doc, operation.get("requestBody"))
    if body:
        content = body.get("content", {}).get("application/json")
        if not content:
            return None
        if "example" in content:
            sample = content["example"]
        elif "schema" in content:
            sample = example_from_schema(content["schema"], doc)
        else:
            return None
        return json.dumps(sample, indent=2, ensure_ascii=False)

    # Swagger 2.0 body parameter
    for p in operation.get("parameters", []):
        p = _deref(doc, p)
        if p.get("in") == "body" and "schema" in p:
            return json.dumps(example_from_schema(p["schema"], doc), indent=2, ensure_ascii=False)
    return None


def _response_schema(doc: dict, resp: Any) -> Any:
    if not isinstance(resp, dict):
        return None
    if "schema" in resp:  # Swagger 2.0
        return resp["schema"]
    content = resp.get("content") or {}
    for content_type, media in content.items():
        if "json" in content_type and isinstance(media, dict) and "schema" in media:
            return media["schema"]
    return None


def _base_url(doc: dict) -> str:
    servers = doc.get("servers") or []
    if servers and isinstance(servers[0], dict) and servers[0].get("url"):
        return servers[0]["url"].rstrip("/")
    if doc.get("host"):
        scheme = (doc.get("schemes") or ["https"])[0]
        return f"{scheme}://{doc['host']}{doc.get('basePath', '')}".rstrip("/")
    return ""


def _security_headers(doc: dict) -> dict[str, str]:
    schemes = (doc.get("components") or {}).get("securitySchemes") or doc.get("securityDefinitions") or {}
    headers = {}
    for name, scheme in schemes.items():
        kind = scheme.get("type")
        if kind == "http" and scheme.get("scheme") == "bearer":
            headers["Authorization"] = "Bearer {{bearer_token}}"
        elif (kind == "http" and scheme.get("scheme") == "basic") or kind == "basic":
            headers["Authorization"] = "Basic {{basic_auth}}"
        elif kind == "apiKey" and scheme.get("in") == "header" and scheme.get("name"):
            headers[scheme["name"]] = f"{{{{{name}_key}}}}"
    return headers


def _deref(doc: dict, node: Any) -> Any:
    """Follow a local ``#/...`` reference; anything else is returned unchanged."""
    seen = set()
    while isinstance(node, dict) and isinstance(node.get("$ref"), str) and node["$ref"].startswith("#/"):
        ref = node["$ref"]
        if ref in seen:
            return {}
        seen.add(ref)
        target: Any = doc
        for part in ref[2:].split("/"):
            part = part.replace("~1", "/").replace("~0", "~")
            if not isinstance(target, dict) or part not in target:
                return {}
            target = target[part]
        node = target
    return node
