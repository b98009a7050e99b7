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

"""Runs a whole merge of several feeds into one.

A regional merge joins the feeds of different agencies covering the same
period. A service period merge joins two consecutive versions of one feed,
the active one and the future one, into a feed covering both periods.

Example:
  result = merge([dataset_a, dataset_b], modes.SERVICE_PERIOD, "merged")
  if result.failed:
    print(result.failure_reasons)
"""

import logging
import re
from concurrent.futures import ThreadPoolExecutor

from . import modes
from . import problems as problems_module
from . import tables
from . import util
from .dataset import Dataset
from .datasetmerger import MakeMerger
from .scoping import IdScopeResolver
from .serviceperiod import ServicePeriodResolver
from .signature import TripSignatureComparator
from .validator import ReferentialIntegrityValidator

log = logging.getLogger(__name__)


class MergeResult(object):
    """The outcome of a merge.

    Attributes:
      output_name: The name the merged feed is published under.
      mode: The merge mode.
      failed: True if the merge failed. Nothing is published then.
      failure_reasons: Human readable reasons for a failure.
      row_counts: A map from table name to the number of merged rows.
      strategy_used: The strategy of a service period merge, or None.
      output: What the sink returned when publishing, like a path.
      dataset: The merged Dataset, or None if the merge stopped early.
      problems: Every problem reported during the merge.
      merge_stats: A list of (dataset name, file name, merged, copied) for
                   each merged table, see DataSetMerger.GetMergeStats().
      input_names: The names of the input feeds.
    """

    def __init__(self, output_name, mode):
        self.output_name = output_name
        self.mode = mode
        self.failed = False
        self.failure_reasons = []
        self.row_counts = {}
        self.strategy_used = None
        self.output = None
        self.dataset = None
        self.problems = []
        self.merge_stats = []
        self.input_names = []

    def __repr__(self):
        return "<MergeResult %s %s>" % (
            self.output_name,
            "failed" if self.failed else "succeeded",
        )


class FeedMerger(object):
    """A class for merging whole feeds.

    This class takes a list of Datasets and uses DataSetMerger instances to
    merge them table by table and produce the merged Dataset.

    Attributes:
      datasets: The input Datasets.
      mode: One of modes.ALL_MODES.
      output_name: The name of the merged feed.
      problem_reporter: The merge problem reporter.
      accumulator: The MergeProblemAccumulator keeping every problem.
      scope_map: The ScopeMap rewriting ids, set once scopes are resolved.
      service_plan: The ServicePlan of a service period merge.
      unified_trip_ids: Ids of trips listed identically by both feeds of a
                        service period merge.
      active_index: The index of the active dataset of a service period merge.
      future_index: The index of the future dataset of a service period merge.
      strategy: The strategy of a service period merge.
    """

    # Threads merging independent tables, None for the executor default.
    max_workers = None

    def __init__(
        self,
        datasets,
        mode,
        output_name,
        problem_reporter=None,
        sink=None,
        max_workers=None,
    ):
        """Initialise the merger.

        Once this initialiser has been called, the datasets should not be
        modified.

        Args:
          datasets: The list of input Datasets.
          mode: The merge mode, modes.REGIONAL or modes.SERVICE_PERIOD.
          output_name: The name to publish the merged feed under.
          problem_reporter: An optional ProblemReporter whose accumulator is
                            also given every problem, for display. It should
                            record problems rather than raise them.
          sink: An optional sink the merged feed is published to.
          max_workers: The number of threads merging independent tables.
        """
        self.datasets = list(datasets)
        self.mode = mode
        self.output_name = output_name
        self.sink = sink
        if max_workers is not None:
            self.max_workers = max_workers
        downstream = None
        if problem_reporter is not None:
            downstream = problem_reporter.GetAccumulator()
        self.accumulator = problems_module.MergeProblemAccumulator(downstream)
        self.problem_reporter = problems_module.MergeProblemReporter(
            self.accumulator
        )
        self.scope_resolver = None
        self.scope_map = None
        self.service_plan = None
        self.unified_trip_ids = set()
        self.active_index = None
        self.future_index = None
        self.strategy = None
        self._mergers = []
        self._idnum = max(
            [self._FindLargestIdPostfixNumber(d) for d in self.datasets] or [0]
        )

    def _FindLargestIdPostfixNumber(self, dataset):
        """Finds the largest integer used as the ending of an id in the dataset.

        Args:
          dataset: The dataset to check.

        Returns:
          The maximum integer used as an ending for an id.
        """
        postfix_number_re = re.compile(r"(\d+)$")
        max_postfix_number = 0
        for key_space in tables.ALL_KEY_SPACES:
            for entity_id in dataset.GetKeyValues(key_space):
                match = postfix_number_re.search(entity_id)
                if match is not None:
                    max_postfix_number = max(
                        max_postfix_number, int(match.group(1))
                    )
        return max_postfix_number

    def GetFeedName(self, index):
        """Returns the name of the input dataset at index, for messages."""
        return self.datasets[index].name

    def GenerateId(self, entity_id=None):
        """Generate a unique id based on the given id.

        This is done by appending a counter which is then incremented. The
        counter is initialised at the maximum number used as an ending for
        any id in the input datasets.

        Args:
          entity_id: The base id string. This is allowed to be None.

        Returns:
          The generated id.
        """
        self._idnum += 1
        if entity_id:
            return "%s_merged_%d" % (entity_id, self._idnum)
        else:
            return "merged_%d" % self._idnum

    def AddMerger(self, merger):
        """Add a DataSetMerger to be run by MergeFeeds().

        Args:
          merger: The DataSetMerger instance.
        """
        self._mergers.append(merger)

    def AddDefaultMergers(self):
        """Adds a DataSetMerger for each known table found in an input."""
        catalog = self.datasets[0].GetCatalog()
        for table in catalog.GetTableList():
            merger = MakeMerger(self, table)
            if merger.HasInput():
                self.AddMerger(merger)

    def GetMerger(self, cls):
        """Looks for an added DataSetMerger derived from the given class.

        Args:
          cls: A class derived from DataSetMerger.

        Returns:
          The first matching DataSetMerger instance.

        Raises:
          LookupError: No matching DataSetMerger has been added.
        """
        for merger in self._mergers:
            if isinstance(merger, cls):
                return merger
        raise LookupError("No matching DataSetMerger found")

    def GetMergerList(self):
        """Returns the list of DataSetMerger instances that have been added."""
        return self._mergers

    def CheckInputs(self):
        """Report a fatal problem if the inputs can't be merged in this mode."""
        if self.mode not in modes.ALL_MODES:
            self.problem_reporter.InvalidMergeInput(
                "Unknown merge mode '%s'." % self.mode
            )
        if not self.datasets:
            self.problem_reporter.InvalidMergeInput("There are no feeds to merge.")
        if self.mode == modes.SERVICE_PERIOD and len(self.datasets) != 2:
            self.problem_reporter.InvalidMergeInput(
                "A service period merge takes exactly two feeds, not %d."
                % len(self.datasets)
            )
        for index, dataset in enumerate(self.datasets):
            feed_name = self.GetFeedName(index)
            if dataset.has_blocking_errors:
                self.problem_reporter.BlockingErrors(feed_name)
            for table in dataset.GetCatalog().GetRequiredTables():
                if not dataset.HasTable(table.name):
                    self.problem_reporter.MissingTable(feed_name, table.file_name)
            if not any(dataset.HasTable(t) for t in tables.CALENDAR_TABLES):
                self.problem_reporter.MissingTable(feed_name, "calendar.txt")

    def _OrderServicePeriodInputs(self):
        """Set active_index and future_index from the feeds' start dates."""
        starts = []
        for index, dataset in enumerate(self.datasets):
            start = dataset.GetDateRange()[0]
            if start is None:
                self.problem_reporter.InvalidMergeInput(
                    "The feed %s has no service dates." % self.GetFeedName(index)
                )
            if not util.IsValidDate(start):
                self.problem_reporter.InvalidMergeInput(
                    "The feed %s starts on '%s' which isn't a YYYYMMDD date."
                    % (self.GetFeedName(index), start)
                )
            starts.append(start)
        if starts[0] == starts[1]:
            self.problem_reporter.AmbiguousFeedOrder(
                self.GetFeedName(0), self.GetFeedName(1), starts[0]
            )
        if starts[0] < starts[1]:
            self.active_index, self.future_index = 0, 1
        else:
            self.active_index, self.future_index = 1, 0
        log.info(
            "Active feed %s, future feed %s starting on %s",
            self.GetFeedName(self.active_index),
            self.GetFeedName(self.future_index),
            starts[self.future_index],
        )

    def ResolveRegional(self):
        self.scope_resolver = IdScopeResolver(self)
        self.scope_map = self.scope_resolver.ResolveRegional()

    def ResolveServicePeriod(self):
        """Resolve the ids, shared trips and calendars of the two feeds."""
        self._OrderServicePeriodInputs()
        active_index, future_index = self.active_index, self.future_index
        self.scope_resolver = IdScopeResolver(self)
        self.scope_map = self.scope_resolver.ResolveServicePeriod(
            active_index, future_index
        )

        shared_trip_ids = self.scope_resolver.GetCollisions(
            tables.TRIP_ID, active_index, future_index
        )
        if shared_trip_ids:
            self.strategy = modes.STRATEGY_CHECK_STOP_TIMES
        else:
            self.strategy = modes.STRATEGY_DEFAULT
        log.info("Using the %s strategy", self.strategy)
        if shared_trip_ids:
            comparator = TripSignatureComparator(
                self.datasets[active_index], self.datasets[future_index]
            )
            matching, mismatched = comparator.Compare(shared_trip_ids)
            for trip_id in mismatched:
                self.problem_reporter.TripSignatureMismatch(
                    trip_id,
                    self.GetFeedName(active_index),
                    self.GetFeedName(future_index),
                )
            self.unified_trip_ids = set(matching)

        self.service_plan = ServicePeriodResolver(
            self,
            active_index,
            future_index,
            self.scope_resolver,
            self.unified_trip_ids,
            self.strategy,
        ).Resolve()

    def MergeFeeds(self):
        """Merge the feeds.

        This is done by running the DataSetMergers that have been added with
        AddMerger(), one table family after another. The calendar and trip
        tables are merged in order. The tables of a later family only depend
        on those, so they are merged concurrently.

        Returns:
          True if the merge was successful.
        """
        for family in tables.FAMILY_ORDER:
            mergers = [m for m in self._mergers if m.table.family == family]
            if family in (tables.TRIP_DEPENDENT, tables.INDEPENDENT):
                with ThreadPoolExecutor(max_workers=self.max_workers) as executor:
                    results = list(
                        executor.map(lambda m: m.MergeDataSets(), mergers)
                    )
            else:
                results = [m.MergeDataSets() for m in mergers]
            if not all(results):
                return False
        return True

    def GetMergedDataset(self):
        """Returns the merged Dataset built from the mergers' rows."""
        table_rows = {}
        table_columns = {}
        for merger in self._mergers:
            table_rows[merger.table.name] = merger.rows
            table_columns[merger.table.name] = merger.GetColumns()
        return Dataset(
            table_rows,
            table_columns=table_columns,
            name=self.output_name,
            feed_source_name=self.output_name,
            catalog=self.datasets[0].GetCatalog(),
        )

    def Merge(self):
        """Run the whole merge and publish the merged feed if it succeeds.

        Returns:
          A MergeResult.
        """
        result = MergeResult(self.output_name, self.mode)
        result.input_names = [
            self.GetFeedName(i) for i in range(len(self.datasets))
        ]
        merged = None
        try:
            self.CheckInputs()
            if self.mode == modes.SERVICE_PERIOD:
                self.ResolveServicePeriod()
            else:
                self.ResolveRegional()
            self.AddDefaultMergers()
            if self.MergeFeeds():
                merged = self.GetMergedDataset()
                ReferentialIntegrityValidator(
                    merged, self.problem_reporter, self.max_workers
                ).Validate()
        except problems_module.ExceptionWithContext as e:
            if not (e.IsError() and e.FATAL):
                raise
            log.error("Merge of %s stopped: %s", self.output_name, e)

        result.strategy_used = self.strategy
        result.problems = list(self.accumulator.problems)
        result.merge_stats = [
            (m.DATASET_NAME, m.FILE_NAME) + m.GetMergeStats()
            for m in self._mergers
        ]
        errors = self.accumulator.GetErrors()
        if merged is None or errors:
            result.failed = True
            result.failure_reasons = [e.FormatProblem() for e in errors]
            log.warning(
                "Merge of %s failed with %d error(s)",
                self.output_name,
                len(errors),
            )
            return result

        result.dataset = merged
        result.row_counts = merged.GetRowCount()
        if self.sink is not None:
            result.output = self.sink.Publish(merged, self.output_name)
        log.info("Merged %d feed(s) into %s", len(self.datasets), self.output_name)
        return result


def merge(
    inputs, mode, output_name, sink=None, problem_reporter=None, max_workers=None
):
    """Merge the input Datasets into one feed published as output_name.

    Args:
      inputs: The list of input Datasets.
      mode: modes.REGIONAL or modes.SERVICE_PERIOD.
      output_name: The name to publish the merged feed under.
      sink: An optional sink the merged feed is published to.
      problem_reporter: An optional ProblemReporter also given every problem.
      max_workers: The number of threads merging independent tables.

    Returns:
      A MergeResult.
    """
    feed_merger = FeedMerger(
        inputs,
        mode,
        output_name,
        problem_reporter=problem_reporter,
        sink=sink,
        max_workers=max_workers,
    )
    return feed_merger.Merge()
