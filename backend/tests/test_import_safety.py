"""
test_import_safety.py — Circular import checks.

Every service, model and router module must import on its own, in any order,
without pulling in a provider connection. Import order matters here because
report_session, report_store and the routers import each other's modules.
"""

import importlib
import sys

import pytest

MODULES = [
    "app.config",
    "app.models.findings",
    "app.services.errors",
    "app.services.findings_pipeline",
    "app.services.layer_manager",
    "app.services.overlay_mapper",
    "app.services.file_intake",
    "app.services.llm_client",
    "app.services.analysis_service",
    "app.services.chat_service",
    "app.services.export_builder",
    "app.services.report_engine",
    "app.services.report_session",
    "app.services.report_store",
    "app.services.logging_config",
    "app.services.middleware",
    "app.api.deps",
    "app.api.analysis_routes",
    "app.api.report_routes",
    "app.api.chat_routes",
]


def _evict_app_modules():
    for key in [k for k in sys.modules if k == "app" or k.startswith("app.")]:
        del sys.modules[key]


class TestImports:

    @pytest.mark.parametrize("module", MODULES)
    def test_module_imports_in_isolation(self, module):
        saved = {k: v for k, v in sys.modules.items() if k == "app" or k.startswith("app.")}
        _evict_app_modules()
        try:
            assert importlib.import_module(module) is not None
        finally:
            _evict_app_modules()
            sys.modules.update(saved)

    def test_app_routes_registered(self):
        from app.main import app
        # The OpenAPI schema lists every route however the routers are mounted
        paths = set(app.openapi()["paths"])
        for expected in [
            "/health",
            "/api/analysis/upload",
            "/api/analysis/upload-data-url",
            "/api/reports/{report_id}/layers/categories/{category}/toggle",
            "/api/reports/{report_id}/view",
            "/api/reports/{report_id}/export/submit",
            "/api/chat/sessions/{session_id}/messages",
            "/api/reports/{report_id}/findings/{finding_id}/consult",
        ]:
            assert expected in paths
