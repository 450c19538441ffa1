#!/usr/bin/env python3
"""
Health check command for monitoring system status.

Checks configuration and database connectivity.
"""

from argparse import Namespace
from typing import Any, Dict

from .base import BaseCommand


class HealthCommand(BaseCommand):
    """Handle system health monitoring and diagnostics."""

    SUBCOMMANDS = ('check', 'database', 'config')

    def execute(self, subcommand: str, args: Namespace) -> int:
        """Execute health subcommand."""
        try:
            if subcommand == "check":
                return self.check(args)
            elif subcommand == "database":
                return self.database(args)
            elif subcommand == "config":
                return self.show_config(args)
            else:
                available = ", ".join(self.get_available_subcommands())
                self.logger.error(f"Unknown subcommand '{subcommand}'. Available: {available}")
                return 1

        except Exception as e:
            return self.handle_error(e, f"health {subcommand}")

    def check(self, args: Namespace) -> int:
        """Run configuration and database checks."""
        print("🏥 System Health Check")
        print("=" * 50)

        overall_healthy = self._print_config_status()
        overall_healthy = self._print_database_status() and overall_healthy

        print("\n" + "=" * 50)
        if overall_healthy:
            print("✅ Overall Status: HEALTHY")
            return 0
        print("❌ Overall Status: ISSUES DETECTED")
        return 1

    def database(self, args: Namespace) -> int:
        """Check database health only."""
        return 0 if self._print_database_status() else 1

    def show_config(self, args: Namespace) -> int:
        """Print the active configuration without secrets."""
        self.print_json(self._container.get('config_manager').describe())
        return 0

    def _print_config_status(self) -> bool:
        print("\n⚙️  Configuration:")
        try:
            config = self.config
        except Exception as e:
            print(f"  ❌ Configuration invalid: {e}")
            return False

        print(f"  ✅ Environment: {config.environment}")
        print(f"  ℹ️  Waves of {config.fetch.wave_size} feeds, "
              f"{config.fetch.feed_timeout_seconds:g}s timeout per feed, "
              f"refresh every {config.fetch.refresh_interval_minutes} minutes")

        if not config.has_database():
            print("  ❌ DATABASE_URL is not set")
            return False
        print("  ✅ Database configuration: OK")
        return True

    def _print_database_status(self) -> bool:
        print("\n📊 Database Status:")
        try:
            self.require_database()
            health = self.run_async(self._database_health())
        except Exception as e:
            print(f"  ❌ Database check failed: {e}")
            return False

        if not health.get('connected'):
            print("  ❌ Database connection: FAILED")
            print(f"     Error: {health.get('error', 'Unknown error')}")
            return False

        print("  ✅ Database connection: OK")
        for table, count in health.get('tables', {}).items():
            print(f"  📋 {table}: {count} records")
        if 'tables_error' in health:
            print(f"  ⚠️  Table check failed: {health['tables_error']}")
        return True

    async def _database_health(self) -> Dict[str, Any]:
        async with self.store as store:
            return await store.health_check()
