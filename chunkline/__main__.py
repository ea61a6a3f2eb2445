# Copyright (c) 2026 Chunkline developers
# This software is distributed under the terms of the MIT License.

if __name__ == "__main__":
    import sys
    from chunkline._cli import main

    sys.exit(main())
