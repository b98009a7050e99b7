# Copyright (C) 2007 Google Inc.
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#      http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

# Problem types:
# Error: A data issue that makes the merged feed unusable. Errors fail the
# merge.
TYPE_ERROR = 0
# Warning: A data issue worth looking at upstream. The merge still succeeds.
TYPE_WARNING = 1
# Notice: an informational message about a decision taken while merging.
TYPE_NOTICE = 2

ALL_TYPES = [TYPE_ERROR, TYPE_WARNING, TYPE_NOTICE]


class Error(Exception):
    """The base exception class for this package."""
