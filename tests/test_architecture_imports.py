import re
from pathlib import Path


ROOT_DIR = Path(__file__).resolve().parents[1]
PACKAGE_DIR = ROOT_DIR / "habit_tracker"
ROUTERS_DIR = PACKAGE_DIR / "web" / "routers"


def test_routers_delegate_to_handlers_only():
    for router_file in ROUTERS_DIR.glob("*_router.py"):
        source = router_file.read_text(encoding="utf-8")
        assert "from habit_tracker.web import handlers as web_handlers" in source
        assert re.search(r"^\s*from\s+habit_tracker\.application\s+import\b", source, flags=re.MULTILINE) is None
        assert "store_service" not in source


def test_package_init_has_no_application_side_effect_import():
    package_init = (PACKAGE_DIR / "__init__.py").read_text(encoding="utf-8")
    assert ".application import" not in package_init


def test_asgi_entrypoint_exports_application_symbols():
    asgi_entrypoint = (PACKAGE_DIR / "asgi.py").read_text(encoding="utf-8")
    assert "from .application import app, create_app" in asgi_entrypoint


def test_services_do_not_depend_on_the_web_layer():
    for service_file in (PACKAGE_DIR / "services").glob("*.py"):
        source = service_file.read_text(encoding="utf-8")
        assert "fastapi" not in source
        assert "habit_tracker.web" not in source
