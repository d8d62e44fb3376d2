"""``bookadmin`` console entry point: prints dashboard statistics as JSON."""

from __future__ import annotations

import asyncio
import json
import sys

from bookadmin.app import lifespan
from bookadmin.config import Settings
from bookadmin.errors import BookAdminError
from bookadmin.resources.transactions import list_transactions
from bookadmin.stats import load_dashboard, transaction_stats


async def _collect(settings: Settings, *, include_transactions: bool) -> dict:
    async with lifespan(settings) as state:
        report: dict = {"dashboard": (await load_dashboard(state.cache)).model_dump()}
        if include_transactions:
            transactions = await list_transactions(state.cache)
            report["transactions"] = transaction_stats(transactions).model_dump()
        return report


def main() -> None:
    settings = Settings()
    include_transactions = "--transactions" in sys.argv[1:]

    try:
        report = asyncio.run(_collect(settings, include_transactions=include_transactions))
    except BookAdminError as exc:
        print(json.dumps(exc.to_dict()), file=sys.stderr)
        sys.exit(1)

    print(json.dumps(report, indent=2))


if __name__ == "__main__":
    main()
