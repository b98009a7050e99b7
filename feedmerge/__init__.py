#!/usr/bin/python3

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

"""This package merges transit feeds in the General Transit Feed
Specification format.

Two kinds of merge are supported:

  Regional: the feeds of several agencies covering the same period are
    joined into one feed. Ids of every feed but the first are scoped with a
    token naming their feed so they can't collide.
  Service period: two consecutive versions of one feed are joined into a
    feed running the older one's services up to the day before the newer one
    starts and the newer one's after that.

To merge feeds you should do something like:

  import feedmerge
  active = feedmerge.Loader("active.zip", version=1).Load()
  future = feedmerge.Loader("future.zip", version=2).Load()
  result = feedmerge.merge(
      [active, future], feedmerge.SERVICE_PERIOD, "merged",
      sink=feedmerge.ZipFeedSink("/tmp"))

  Loader: Reads a feed into a Dataset
  Dataset: A read-only collection of tables
  FeedMerger: Runs a merge, see also merge()
  MergeResult: The outcome of a merge
  RegionalMerge, ServicePeriodMerge, RunJob: Merge jobs
  ZipFeedSink, MemorySink: Where merged feeds are published
"""

from .version import __version__
from .errors import *
from .modes import *
from .problems import *
from .tables import Catalog, Table, GetCatalog
from .dataset import Dataset
from .loader import Loader
from .writer import MemorySink, WriteFeed, ZipFeedSink
from .scoping import IdScopeResolver, ScopeMap, ScopeId
from .signature import GetTripSignature, TripSignatureComparator
from .serviceperiod import ServicePeriodResolver, ServicePlan
from .datasetmerger import DataSetMerger
from .validator import ReferentialIntegrityValidator
from .feedmerger import FeedMerger, MergeResult, merge
from .jobs import RegionalMerge, ServicePeriodMerge, RunJob
from .report import HTMLProblemAccumulator
