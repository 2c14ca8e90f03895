from __future__ import annotations

from dotenv import load_dotenv

from loganalyzer.cli import main

load_dotenv()

if __name__ == "__main__":
    raise SystemExit(main())
