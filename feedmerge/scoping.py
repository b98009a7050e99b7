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

"""Decides which ids of which feed are rewritten to avoid collisions.

A scoped id is the original id prefixed by the scope token of its feed, as in
"Fake_Agency2:stop1". The token is built from the feed source name and the
feed version so it is unique for each input of a merge.
"""

import logging
from collections import defaultdict

from . import modes
from . import tables
from . import util

log = logging.getLogger(__name__)

# Tables in which a blank agency_id is replaced by the feed's default agency
# of a merge.
AGENCY_BACKFILL_TABLES = ["agency", "routes"]


def MakeScopeToken(dataset):
    """Return the scope token of a dataset, like 'Fake_Agency2'."""
    return "%s%s" % (util.CleanName(dataset.feed_source_name), dataset.version)


def MakeScopeTokens(datasets):
    """Return one scope token per dataset, making repeated tokens unique."""
    tokens = []
    for dataset in datasets:
        token = MakeScopeToken(dataset)
        candidate = token
        n = 1
        while candidate in tokens:
            n += 1
            candidate = "%s_%d" % (token, n)
        tokens.append(candidate)
    return tokens


def ScopeId(token, entity_id, separator=modes.SCOPE_SEPARATOR):
    """Prefix entity_id with token unless it already carries that prefix."""
    prefix = token + separator
    if entity_id.startswith(prefix):
        return entity_id
    return prefix + entity_id


class ScopeMap(object):
    """Maps (dataset index, key space, original id) to the final id.

    Ids without an entry are left unchanged, unless the whole dataset has been
    scoped with ScopeDataset(). Resolving is a pure lookup so resolving the
    same id twice always gives the same answer.
    """

    def __init__(self, separator=modes.SCOPE_SEPARATOR):
        self.separator = separator
        self._entries = {}
        self._scoped_datasets = {}
        self._default_agency_ids = {}

    def Add(self, index, key_space, original_id, final_id):
        self._entries[(index, key_space, original_id)] = final_id

    def ScopeDataset(self, index, token):
        """Scope every id of the dataset at index with token."""
        self._scoped_datasets[index] = token

    def SetDefaultAgencyId(self, index, agency_id):
        """Set the agency_id filled in for blank ones of the dataset at index."""
        self._default_agency_ids[index] = agency_id

    def GetDefaultAgencyId(self, index):
        return self._default_agency_ids.get(index)

    def Resolve(self, index, key_space, value):
        """Return the final id of value, a key_space id of dataset index."""
        if util.IsEmpty(value):
            return value
        key = (index, key_space, value)
        if key in self._entries:
            return self._entries[key]
        token = self._scoped_datasets.get(index)
        if token is not None:
            return ScopeId(token, value, self.separator)
        return value

    def IsScoped(self, index, key_space, value):
        return self.Resolve(index, key_space, value) != value

    def RewriteRow(self, index, table, row, scoped_columns=None):
        """Return a copy of row with every scoped id resolved.

        Args:
          index: The index of the dataset row comes from.
          table: The tables.Table of row.
          row: A dict of column values.
          scoped_columns: table.GetScopedColumns(), passed in by callers
                          rewriting many rows.
        """
        if scoped_columns is None:
            scoped_columns = table.GetScopedColumns()
        new_row = dict(row)
        for column, key_space in list(scoped_columns.items()):
            value = row.get(column)
            if util.IsEmpty(value):
                default_agency_id = self._default_agency_ids.get(index)
                if (
                    key_space == tables.AGENCY_ID
                    and table.name in AGENCY_BACKFILL_TABLES
                    and default_agency_id
                ):
                    new_row[column] = default_agency_id
                continue
            new_row[column] = self.Resolve(index, key_space, value)
        return new_row


class IdScopeResolver(object):
    """Builds the ScopeMap of a merge.

    Attributes:
      datasets: The list of input Datasets.
      tokens: The scope token of each dataset.
      scope_map: The ScopeMap being built.
      unified: A map from key space to the set of ids which are identical in
               both feeds of a service period merge. The rows of the active
               feed for these ids are dropped in favour of the future feed's.
    """

    def __init__(self, feed_merger, catalog=None):
        """Initialise.

        Args:
          feed_merger: The FeedMerger. Its datasets, problem reporter and id
                       generator are used.
          catalog: The tables.Catalog, by default the one of the first
                   dataset.
        """
        self.feed_merger = feed_merger
        self.datasets = feed_merger.datasets
        self.catalog = catalog or self.datasets[0].GetCatalog()
        self.tokens = MakeScopeTokens(self.datasets)
        self.scope_map = ScopeMap()
        self.unified = defaultdict(set)

    def GetToken(self, index):
        return self.tokens[index]

    def ScopeId(self, index, entity_id):
        return ScopeId(self.tokens[index], entity_id, self.scope_map.separator)

    def ResolveRegional(self):
        """Scope every id of every feed but the first one.

        Agencies without an agency_id are given a generated one which is also
        used for routes without an agency_id.

        Returns:
          The ScopeMap.
        """
        for index, dataset in enumerate(self.datasets):
            if index > 0:
                self.scope_map.ScopeDataset(index, self.tokens[index])
            self._AssignDefaultAgency(index, dataset)
        log.info(
            "Scoped ids of %d feed(s) for a regional merge",
            len(self.datasets) - 1,
        )
        return self.scope_map

    def _AssignDefaultAgency(self, index, dataset, generated_id=None):
        """Set the agency_id used for blank ones of the dataset at index.

        Args:
          index: The index of the dataset.
          dataset: The Dataset.
          generated_id: An id generated for another feed of the merge. It is
                        given to a blank agency_id instead of a new one.

        Returns:
          The id given to a blank agency_id, or None if the feed has none.
        """
        agencies = list(dataset.GetRows("agency"))
        default_agency_id = None
        generated = None
        for agency in agencies:
            if util.IsEmpty(agency.get("agency_id")):
                generated = generated_id or self.feed_merger.GenerateId()
                default_agency_id = generated
                self.feed_merger.problem_reporter.AgencyIdGenerated(
                    self.feed_merger.GetFeedName(index), default_agency_id
                )
                break
        if default_agency_id is None and agencies:
            default_agency_id = self.scope_map.Resolve(
                index, tables.AGENCY_ID, agencies[0]["agency_id"]
            )
        if default_agency_id is not None:
            self.scope_map.SetDefaultAgencyId(index, default_agency_id)
        return generated

    def GetCollisions(self, key_space, a_index, b_index):
        """Return the sorted ids of key_space listed by both datasets."""
        a_values = self.datasets[a_index].GetKeyValues(key_space)
        b_values = self.datasets[b_index].GetKeyValues(key_space)
        return sorted(a_values & b_values)

    def ResolveServicePeriod(self, active_index, future_index):
        """Scope the colliding ids of the active feed.

        Ids of the future feed are never scoped. Trip ids are left to the
        TripSignatureComparator and service ids are always scoped on the
        active side when they collide. Any other colliding entity is unified
        when its rows are the same in both feeds and scoped otherwise. A blank
        agency_id is given a generated id shared by both feeds.

        Returns:
          The ScopeMap.
        """
        for key_space in tables.ALL_KEY_SPACES:
            if key_space == tables.TRIP_ID:
                continue
            collisions = self.GetCollisions(key_space, active_index, future_index)
            if not collisions:
                continue
            if key_space == tables.SERVICE_ID:
                for service_id in collisions:
                    self.scope_map.Add(
                        active_index,
                        key_space,
                        service_id,
                        self.ScopeId(active_index, service_id),
                    )
                continue
            self._ResolveEntityCollisions(
                key_space, collisions, active_index, future_index
            )
        # Both versions describe the same agency, so a blank agency_id gets
        # the same generated id in both feeds.
        generated_id = self._AssignDefaultAgency(
            future_index, self.datasets[future_index]
        )
        self._AssignDefaultAgency(
            active_index, self.datasets[active_index], generated_id
        )
        return self.scope_map

    def _ResolveEntityCollisions(
        self, key_space, collisions, active_index, future_index
    ):
        defining_tables = self.catalog.GetDefiningTables(key_space)
        for table in defining_tables:
            a_entities = _GroupRowsById(
                self.datasets[active_index], table, collisions
            )
            b_entities = _GroupRowsById(
                self.datasets[future_index], table, collisions
            )
            for entity_id in collisions:
                a_rows = a_entities.get(entity_id, [])
                b_rows = b_entities.get(entity_id, [])
                if _SameEntity(table, a_rows, b_rows):
                    self.unified[key_space].add(entity_id)
                    continue
                new_id = self.ScopeId(active_index, entity_id)
                self.scope_map.Add(active_index, key_space, entity_id, new_id)
                self.feed_merger.problem_reporter.SameIdButNotMerged(
                    table.file_name,
                    key_space,
                    entity_id,
                    self.feed_merger.GetFeedName(active_index),
                    new_id,
                )
        log.info(
            "%s: %d id(s) in both feeds, %d unified",
            key_space,
            len(collisions),
            len(self.unified[key_space]),
        )


def _SortKey(value):
    if value.isdigit():
        return (0, int(value), value)
    return (1, 0, value)


def _GroupRowsById(dataset, table, ids):
    """Return a map from id to the rows of table defining it, in key order."""
    wanted = set(ids)
    grouped = defaultdict(list)
    for row in dataset.GetRows(table.name):
        entity_id = row.get(table.defines)
        if entity_id in wanted:
            grouped[entity_id].append(row)
    for rows in list(grouped.values()):
        rows.sort(key=lambda r: [_SortKey(v) for v in table.GetKey(r)])
    return grouped


def _SameEntity(table, a_rows, b_rows):
    """Return True if two lists of rows describe exactly the same entity.

    Blank and missing values are treated as the same. For a shape this
    compares every point so two shapes are only the same when their whole
    geometry is.
    """
    if len(a_rows) != len(b_rows):
        return False
    for a, b in zip(a_rows, b_rows):
        columns = set(a) | set(b)
        for column in columns:
            if (a.get(column) or "") != (b.get(column) or ""):
                return False
    return True
