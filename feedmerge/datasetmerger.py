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

"""Mergers combining one table of every input feed.

There is one DataSetMerger per table. Rows are first migrated, meaning their
ids are rewritten through the merge's ScopeMap, and then combined according
to the merge mode.
"""

import logging

from . import modes
from . import tables

log = logging.getLogger(__name__)


class DataSetMerger(object):
    """A DataSetMerger is in charge of merging one table.

    Attributes:
      ENTITY_TYPE_NAME: The name of the entity type like 'agency' or 'stop'.
      FILE_NAME: The name of the file containing this data set like 'agency.txt'.
      DATASET_NAME: A name for the dataset like 'Agency' or 'Stops'.
      table: The tables.Table merged.
      rows: The merged rows, available after MergeDataSets() has been called.
    """

    def __init__(self, feed_merger, table):
        """Initialise.

        Args:
          feed_merger: The FeedMerger.
          table: The tables.Table to merge.
        """
        self.feed_merger = feed_merger
        self.table = table
        self.ENTITY_TYPE_NAME = table.name
        self.FILE_NAME = table.file_name
        self.DATASET_NAME = table.name.replace("_", " ").capitalize()
        self.rows = []
        self._scoped_columns = table.GetScopedColumns()
        self._num_merged = 0
        self._num_copied = [0] * len(feed_merger.datasets)

    def _GetIter(self, index):
        """Returns an iterator of the rows of this table in an input dataset."""
        return self.feed_merger.datasets[index].GetRows(self.table.name)

    def _Migrate(self, row, index):
        """Returns a copy of row with its ids rewritten for the merged feed.

        Args:
          row: The row dict.
          index: The index of the dataset containing row.
        """
        return self.feed_merger.scope_map.RewriteRow(
            index, self.table, row, self._scoped_columns
        )

    def _IsSkipped(self, row, index):
        """Returns True if row must be left out of the merged feed."""
        return False

    def _Add(self, index, migrated):
        self.rows.append(migrated)
        if index is not None:
            self._num_copied[index] += 1

    def _GetId(self, migrated):
        return self.table.GetKey(migrated)

    def _MergeConcatenate(self):
        """Migrate the rows of every dataset, keeping all of them."""
        for index in range(len(self.feed_merger.datasets)):
            for orig in self._GetIter(index):
                if not self._IsSkipped(orig, index):
                    self._Add(index, self._Migrate(orig, index))
        return self._num_merged

    def _MergeByIdKeepNew(self):
        """Migrate all rows, discarding duplicates from the active dataset.

        This method migrates all rows from the future dataset. It then keeps
        the rows of the active dataset where there isn't already a row with the
        same key. Keys are compared after migration, so rows referring to
        entities which were scoped don't clash.

        Returns:
          The number of merged rows.
        """
        active_index = self.feed_merger.active_index
        future_index = self.feed_merger.future_index
        future_migrated = []
        future_ids = set()
        for orig in self._GetIter(future_index):
            if self._IsSkipped(orig, future_index):
                continue
            migrated = self._Migrate(orig, future_index)
            future_migrated.append(migrated)
            future_ids.add(self._GetId(migrated))

        for orig in self._GetIter(active_index):
            if self._IsSkipped(orig, active_index):
                continue
            migrated = self._Migrate(orig, active_index)
            if self._GetId(migrated) in future_ids:
                self._num_merged += 1
                continue
            self._Add(active_index, migrated)
        for migrated in future_migrated:
            self._Add(future_index, migrated)
        return self._num_merged

    def _MergeIdentical(self):
        """Migrate all rows, keeping one copy of rows found in both datasets.

        This is used for tables without a primary key, like fare_rules.txt,
        where a row is only identified by all of its values.
        """
        seen = set()
        for index in (self.feed_merger.active_index, self.feed_merger.future_index):
            for orig in self._GetIter(index):
                if self._IsSkipped(orig, index):
                    continue
                migrated = self._Migrate(orig, index)
                frozen = tuple(
                    sorted((k, v or "") for k, v in list(migrated.items()))
                )
                if frozen in seen:
                    self._num_merged += 1
                    continue
                seen.add(frozen)
                self._Add(index, migrated)
        return self._num_merged

    def GetColumns(self):
        """Return the columns of the merged table.

        These are the columns of the input tables, in the order they are first
        seen, followed by columns only added by the merge.
        """
        columns = []
        for dataset in self.feed_merger.datasets:
            for column in dataset.GetTableColumns(self.table.name):
                if column not in columns:
                    columns.append(column)
        for row in self.rows:
            for column in row:
                if column not in columns:
                    columns.append(column)
        return columns

    def HasInput(self):
        """Return True if any input dataset has this table."""
        return any(d.HasTable(self.table.name) for d in self.feed_merger.datasets)

    def MergeDataSets(self):
        """Merge the data sets.

        This method is called in FeedMerger.MergeFeeds(). Rows are concatenated
        in a regional merge. Keyed tables keep the future row of each key in a
        service period merge, and tables without a key keep one copy of
        identical rows.

        Returns:
          A boolean which is False if the dataset was unable to be merged and
          as a result the entire merge should be aborted. In this case, the
          problem will have been reported using the FeedMerger's problem
          reporter.
        """
        if self.feed_merger.mode == modes.REGIONAL:
            self._MergeConcatenate()
        elif self.table.IsKeyed():
            self._MergeByIdKeepNew()
        else:
            self._MergeIdentical()
        log.info(
            "%s merged: %d merged, %s copied",
            self.DATASET_NAME,
            self._num_merged,
            self._num_copied,
        )
        return True

    def GetMergeStats(self):
        """Returns some merge statistics.

        These are given as a tuple (merged, copied) where "merged" is the
        number of rows found in both datasets and kept once, and "copied" is a
        list giving the number of rows copied from each input dataset.

        The statistics are only available after MergeDataSets() has been
        called.

        Returns:
          The statistics tuple.
        """
        return (self._num_merged, list(self._num_copied))


class CalendarMerger(DataSetMerger):
    """A DataSetMerger for calendar.txt, calendar_dates.txt and their shadows.

    In a service period merge the rows come from the ServicePlan rather than
    directly from the inputs.
    """

    def MergeDataSets(self):
        if self.feed_merger.mode == modes.REGIONAL:
            return DataSetMerger.MergeDataSets(self)
        plan = self.feed_merger.service_plan
        for row in plan.GetRows(self.table.name):
            self._Add(None, row)
        if self.table.name == "calendar":
            self._num_merged = len(plan.clones)
        log.info(
            "%s merged: %d rows from the service plan",
            self.DATASET_NAME,
            len(self.rows),
        )
        return True


class TripMerger(DataSetMerger):
    """A DataSetMerger for trips.txt.

    A trip listed with the same stop times by both feeds of a service period
    merge is kept once, from the future feed, and runs on the joined service
    of the ServicePlan.
    """

    def _Migrate(self, row, index):
        migrated = DataSetMerger._Migrate(self, row, index)
        if index == self.feed_merger.future_index:
            joined_id = self.feed_merger.service_plan.trip_service_ids.get(
                row.get("trip_id")
            )
            if joined_id is not None:
                migrated["service_id"] = joined_id
        return migrated

    def _IsSkipped(self, row, index):
        return (
            index == self.feed_merger.active_index
            and row.get("trip_id") in self.feed_merger.unified_trip_ids
        )

    def MergeDataSets(self):
        if self.feed_merger.mode == modes.REGIONAL:
            return DataSetMerger.MergeDataSets(self)
        DataSetMerger.MergeDataSets(self)
        self._num_merged = len(self.feed_merger.unified_trip_ids)
        return True


class TripDependentMerger(DataSetMerger):
    """A DataSetMerger for tables keyed by trip, like stop_times.txt.

    The active rows of a trip listed by both feeds of a service period merge
    are dropped in favour of the future ones, even when the two feeds number
    the stops differently.
    """

    def _IsSkipped(self, row, index):
        return (
            self.feed_merger.mode == modes.SERVICE_PERIOD
            and index == self.feed_merger.active_index
            and row.get("trip_id") in self.feed_merger.unified_trip_ids
        )


class FeedInfoMerger(DataSetMerger):
    """A DataSetMerger for feed_info.txt.

    A service period merge keeps the future feed_info with its
    feed_start_date moved back to the active one.
    """

    def MergeDataSets(self):
        if self.feed_merger.mode == modes.REGIONAL:
            return DataSetMerger.MergeDataSets(self)
        active_rows = list(self._GetIter(self.feed_merger.active_index))
        future_rows = list(self._GetIter(self.feed_merger.future_index))
        if not future_rows:
            for row in active_rows:
                self._Add(self.feed_merger.active_index, dict(row))
            return True
        start_dates = [
            r["feed_start_date"]
            for r in active_rows + future_rows
            if r.get("feed_start_date")
        ]
        for row in future_rows:
            migrated = dict(row)
            if start_dates and migrated.get("feed_start_date"):
                migrated["feed_start_date"] = min(start_dates)
            self._Add(self.feed_merger.future_index, migrated)
        self._num_merged = len(active_rows)
        return True


def MakeMerger(feed_merger, table):
    """Return the DataSetMerger for table."""
    if table.family == tables.CALENDAR:
        return CalendarMerger(feed_merger, table)
    if table.family == tables.TRIPS:
        return TripMerger(feed_merger, table)
    if table.family == tables.TRIP_DEPENDENT:
        return TripDependentMerger(feed_merger, table)
    if table.name == "feed_info":
        return FeedInfoMerger(feed_merger, table)
    return DataSetMerger(feed_merger, table)
