"""Use the service layer directly, without going through Flask."""

import importlib

from config import get_settings_module

from src.shule_system.shule_system.container import build_container


def main():
    settings = importlib.import_module(get_settings_module())
    container = build_container(db_config=settings.DB_CONFIG, settings=settings)

    admin = container.auth_service.authenticate("admin@mfano.shule.local", "admin123")
    report = container.necta_service.tenant_report(current_user=admin)
    print(f"NECTA compliance: {report.overall_compliance}%")
    for check in report.checks:
        print(f"  [{check.status.value}] {check.check_type.value}: {check.message}")

    print(container.academic_service.get_stats(current_user=admin))


if __name__ == "__main__":
    main()
