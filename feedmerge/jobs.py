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

"""Merge jobs, describing which feeds to merge and how."""

import collections

from . import modes
from .feedmerger import merge

# Joins the feeds of several agencies into one regional feed.
RegionalMerge = collections.namedtuple("RegionalMerge", ["inputs", "output_name"])

# Joins the active and the future version of one feed.
ServicePeriodMerge = collections.namedtuple(
    "ServicePeriodMerge", ["active", "future", "output_name"]
)


def RunJob(job, sink=None, problem_reporter=None, max_workers=None):
    """Run a merge job.

    Args:
      job: A RegionalMerge or ServicePeriodMerge.
      sink: Where the merged feed is published.
      problem_reporter: An optional ProblemReporter also given every problem.
      max_workers: The number of threads merging independent tables.

    Returns:
      A MergeResult.

    Raises:
      ValueError: job is not a known kind of job.
    """
    if isinstance(job, RegionalMerge):
        inputs = list(job.inputs)
        mode = modes.REGIONAL
    elif isinstance(job, ServicePeriodMerge):
        inputs = [job.active, job.future]
        mode = modes.SERVICE_PERIOD
    else:
        raise ValueError("Unknown merge job %r" % (job,))
    return merge(
        inputs,
        mode,
        job.output_name,
        sink=sink,
        problem_reporter=problem_reporter,
        max_workers=max_workers,
    )
