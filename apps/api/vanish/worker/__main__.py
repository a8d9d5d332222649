from __future__ import annotations

import logging

from vanish.worker.runner import SweeperConfig, run_sweeper_forever


def main() -> None:
    logging.basicConfig(level=logging.INFO, format="%(message)s")
    run_sweeper_forever(config=SweeperConfig.from_settings())


if __name__ == "__main__":
    main()
