# Copyright (c) 2026 Chunkline developers
# This software is distributed under the terms of the MIT License.

"""
The util package contains small helpers used across the library.
"""

from ._broadcast import broadcast as broadcast

from ._repr import repr_attributes as repr_attributes
from ._repr import repr_attributes_noexcept as repr_attributes_noexcept
