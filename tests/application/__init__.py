# Copyright (c) 2026 Chunkline developers
# This software is distributed under the terms of the MIT License.
