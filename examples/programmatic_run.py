"""
Example: Programmatic Run

This example runs an approval batch from Python instead of the CLI, with
a Ctrl+C-free timeout that cancels the run cleanly.
"""

import asyncio

from portal_approver import ApprovalRunner, load_config
from portal_approver.utils import CancelToken


async def main():
    """Approve three requests, stopping after ten minutes at the latest."""

    # Load configuration (from env vars, config files, or defaults)
    settings = load_config(approval={"batch_size": 10})

    runner = ApprovalRunner(settings)
    cancel = CancelToken()
    asyncio.get_running_loop().call_later(600, cancel.cancel, "time limit reached")

    result = await runner.run(["1001", "1002", "1003"], cancel=cancel)

    print(f"Status: {result.status.value}")
    for outcome, count in result.summary.items():
        print(f"  {outcome}: {count}")
    print(f"Run log: {result.log_path}")

    # Every record is already on disk; the in-memory copy is the same data
    for record in result.run_log.records:
        print(f"{record.request_id}: {record.outcome.value} {record.note}")


if __name__ == "__main__":
    asyncio.run(main())
