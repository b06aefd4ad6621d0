"""Database Seed Script - Creates the standing RodMar accounts and terceros"""
import asyncio
import sys
from pathlib import Path

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from sqlalchemy import select

from rodmar.database import AsyncSessionLocal
from rodmar.models import Account, AccountKind
from rodmar.services.account_service import AccountService

# (kind, name, code); code None means the normalized name
SEED_ACCOUNTS = [
    (AccountKind.RODMAR, "Bemovil", None),
    (AccountKind.RODMAR, "Corresponsal", None),
    (AccountKind.RODMAR, "Efectivo", None),
    (AccountKind.RODMAR, "Cuentas German", None),
    (AccountKind.RODMAR, "Cuentas Jhon", None),
    (AccountKind.RODMAR, "Otros", None),
    (AccountKind.TERCERO, "Banco", None),
    (AccountKind.TERCERO, "La Casa del Motero", "LCDM"),
    (AccountKind.TERCERO, "Postobón", None),
    (AccountKind.MINA, "La Esperanza", None),
    (AccountKind.COMPRADOR, "Carbones del Norte", None),
    (AccountKind.VOLQUETERO, "Pedro Peña", None),
]


async def seed_database():
    """Seed the database with the standing accounts"""
    print("=" * 60)
    print("DATABASE SEEDING STARTED")
    print("=" * 60)

    async with AsyncSessionLocal() as session:
        # Check if data already exists
        result = await session.execute(select(Account.id).limit(1))
        if result.scalar_one_or_none() is not None:
            print("\n⚠️  Database already seeded. Skipping...")
            return

        service = AccountService(session)

        print("\n1️⃣  Creating accounts...")
        created = []
        for kind, name, code in SEED_ACCOUNTS:
            account = await service.create_account(kind, name, code)
            created.append(account)
            print(f"   ✓ Created: {account.name} ({account.ref})")

        print("\n" + "=" * 60)
        print("✅ DATABASE SEEDING COMPLETED SUCCESSFULLY")
        print("=" * 60)

        print("\n📊 SUMMARY:")
        for kind in AccountKind:
            count = sum(1 for account in created if account.kind == kind)
            print(f"   • {kind.value}: {count}")

        print("\n💡 NEXT STEPS:")
        print("   1. Start the API server: uvicorn rodmar.main:app --reload")
        print("   2. Visit: http://localhost:8000/docs")

        print("\n📝 SAMPLE API REQUESTS:")
        print("   • Record a completed transaction:")
        print("     POST /api/v1/transactions")
        print("     Body: {\"origin\": {\"kind\": \"MINA\", \"code\": \"LA_ESPERANZA\"},")
        print("            \"destination\": {\"kind\": \"COMPRADOR\", \"code\": \"CARBONES_DEL_NORTE\"},")
        print("            \"amount\": \"2000000\", \"concept\": \"Pago carbón\", \"occurred_at\": \"2026-03-20T10:00:00Z\"}")
        print("\n   • Rebuild every balance:")
        print("     POST /api/v1/balances/recalculate")

        print("\n" + "=" * 60)


async def main():
    """Main entry point"""
    try:
        await seed_database()
    except Exception as e:
        print(f"\n❌ Seeding failed: {str(e)}")
        sys.exit(1)


if __name__ == "__main__":
    asyncio.run(main())
