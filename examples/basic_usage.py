#!/usr/bin/env python3
"""Basic perpmovers usage example.

This example runs the monitor for one minute and prints the top movers:
1. Subscribe to every USDT perpetual on the 5m and 1h intervals
2. Print crossings as they happen (via hooks)
3. Print the ten biggest 5m movers every 15 seconds
"""

import asyncio

from perpmovers import Interval, MarketMonitor, MonitorConfig
from perpmovers.hooks import HookEvent, register_hook


def on_crossing(payload):
    """Print one line per crossing."""
    d = payload.details
    print(f"   CROSSING {payload.symbol} {d['interval']} {d['direction']} ({d['value']:.2f}%)")


async def main():
    """Run basic usage example."""
    print("=" * 70)
    print("perpmovers: Basic Usage Example")
    print("=" * 70)

    config = MonitorConfig(intervals=["5m", "1h"], alert_intervals=["5m"], alerts_enabled=True)
    register_hook(HookEvent.CROSSING_DETECTED, on_crossing)

    monitor = MarketMonitor(config)
    print("\n1. Resolving universe and opening streams...")
    await monitor.start()
    status = monitor.status()
    print(f"   {status['symbols']} symbols across {status['partitions']} connection(s)")

    try:
        for _ in range(4):
            await asyncio.sleep(15)
            print("\n2. Top 5m movers:")
            for symbol, row in monitor.store.sorted_rows("5m-desc")[:10]:
                print(f"   {symbol:<14} {row.changes[Interval.M5] or '-':>8}%  {row.last_price}")
    finally:
        await monitor.close()

    print("\n" + "=" * 70)


if __name__ == "__main__":
    asyncio.run(main())
