#!/usr/bin/env python3
from hls_components.cli import main


if __name__ == "__main__":
    raise SystemExit(main())
