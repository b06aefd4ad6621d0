"""Maintenance Script - Rebuilds every cached balance from the ledger"""
import asyncio
import logging
import sys
from pathlib import Path

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from rodmar.config import settings
from rodmar.database import AsyncSessionLocal, close_db
from rodmar.services.balance_engine import BalanceRecalculationEngine
from rodmar.services.exceptions import LedgerIntegrityError

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)


async def recalculate(stale_only: bool = False):
    print("=" * 60)
    print("BALANCE RECALCULATION STARTED")
    print("=" * 60)

    async with AsyncSessionLocal() as session:
        engine = BalanceRecalculationEngine(session)

        if stale_only:
            results = await engine.recalculate_stale()
            print(f"\n✅ Recalculated {len(results)} stale account(s)")
            for result in results:
                print(f"   • Account {result.account_id}: {result.previous_balance} -> {result.balance}")
        else:
            summary = await engine.recalculate_all()
            print("\n✅ Recalculation completed")
            print(f"   • Accounts updated: {summary.accounts_updated}")
            print(f"   • Entries processed: {summary.entries_processed}")
            print(f"   • Pending transactions skipped: {summary.pending_skipped}")
            print(f"   • Balances changed: {summary.accounts_changed}")

    print("\n" + "=" * 60)


async def main():
    """Main entry point; pass --stale to rebuild only stale accounts"""
    try:
        await recalculate(stale_only="--stale" in sys.argv[1:])
    except LedgerIntegrityError as e:
        print(f"\n❌ Nothing was written: {e}")
        sys.exit(2)
    except Exception as e:
        print(f"\n❌ Recalculation failed: {str(e)}")
        sys.exit(1)
    finally:
        await close_db()


if __name__ == "__main__":
    asyncio.run(main())
