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

# Merge modes:
# Regional: union of feeds published by different agencies.
REGIONAL = "regional"
# Service period: two versions of the same feed, one following the other in
# time.
SERVICE_PERIOD = "service_period"

ALL_MODES = [REGIONAL, SERVICE_PERIOD]

# Strategies decided while running a service period merge.
STRATEGY_DEFAULT = "DEFAULT"
STRATEGY_CHECK_STOP_TIMES = "CHECK_STOP_TIMES"

# Joins a scope token and an original id, as in "Fake_Agency2:stop1".
SCOPE_SEPARATOR = ":"
