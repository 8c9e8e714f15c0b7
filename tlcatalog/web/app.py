"""轻量级查询 API（基于 Flask）

提供：目录条目查询、条目展开、预定义方案与自定义组合的环境清单。
只做解析，不触发下载。
"""

from __future__ import annotations

import logging
import re

from flask import Flask, jsonify, request
from werkzeug.exceptions import HTTPException

from tlcatalog.core.exceptions import TLCatalogError, UnknownEntryError, ValidationError
from tlcatalog.services.container import get_container

logger = logging.getLogger(__name__)

app = Flask(__name__)

_SAFE_NAME_RE = re.compile(r"^[a-zA-Z0-9_.+\-]+$")
MAX_SELECTION = 512


def _validate_name(value: str, field: str) -> str:
    """条目名只允许字母/数字/._+-"""
    value = str(value).strip()
    if not _SAFE_NAME_RE.match(value):
        raise ValidationError(f"参数 '{field}' 包含非法字符: {value}")
    return value


@app.errorhandler(HTTPException)
def handle_http_exception(exc):
    """将所有 HTTP 异常统一返回 JSON"""
    return jsonify(error=exc.description), exc.code


@app.errorhandler(TLCatalogError)
def handle_catalog_error(exc: TLCatalogError):
    if isinstance(exc, UnknownEntryError):
        status = 404
    elif isinstance(exc, ValidationError):
        status = 400
    else:
        status = 500
    return jsonify(error=str(exc), code=exc.code), status


@app.errorhandler(Exception)
def handle_generic_exception(exc):  # noqa: ARG001
    """捕获未处理异常，返回 500 JSON"""
    logger.exception("未处理的异常")
    return jsonify(error="服务器内部错误"), 500


def _svc():
    return get_container().catalog


@app.route("/api/packages")
def api_packages():
    prefix = request.args.get("prefix", "")
    packages = _svc().list_packages(prefix=prefix)
    return jsonify(total=len(packages), packages=packages)


@app.route("/api/packages/<name>")
def api_package(name: str):
    name = _validate_name(name, "name")
    return jsonify(package=_svc().describe(name))


@app.route("/api/packages/<name>/flatten")
def api_flatten(name: str):
    name = _validate_name(name, "name")
    pkg = _svc().flatten(name)
    return jsonify(name=pkg.name, artifacts=[a.to_dict() for a in pkg.artifacts])


@app.route("/api/bundles")
def api_bundles():
    return jsonify(bundles=_svc().list_bundles())


@app.route("/api/bundles/<name>")
def api_bundle(name: str):
    name = _validate_name(name, "name")
    return jsonify(environment=_svc().bundle(name).to_dict())


@app.route("/api/combine", methods=["POST"])
def api_combine():
    body = request.get_json(silent=True) or {}
    names = body.get("packages") or []
    if not isinstance(names, list) or not names:
        return jsonify(error="需要提供非空的 packages 列表"), 400
    if len(names) > MAX_SELECTION:
        return jsonify(error=f"一次最多组合 {MAX_SELECTION} 个条目"), 400
    names = [_validate_name(n, "packages") for n in names]
    env_name = _validate_name(body.get("name", "combined"), "name")
    return jsonify(environment=_svc().combine(names, env_name=env_name).to_dict())
