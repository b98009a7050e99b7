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

"""Checks the references between the tables of a merged dataset."""

import logging
from concurrent.futures import ThreadPoolExecutor

from . import util
from .errors import TYPE_ERROR, TYPE_WARNING

log = logging.getLogger(__name__)


class ReferentialIntegrityValidator(object):
    """Validates a merged Dataset.

    Duplicate primary keys and references to missing entities are errors
    which fail the merge. Unused services and rows with unexpected fields are
    only warnings.

    Tables are checked concurrently. The problems found are reported in table
    order once every table has been checked so the report is the same from
    one run to the next.
    """

    def __init__(self, dataset, problem_reporter, max_workers=None):
        self.dataset = dataset
        self.problem_reporter = problem_reporter
        self.max_workers = max_workers
        self._catalog = dataset.GetCatalog()
        self._key_values = {}

    def _GetKeyValues(self, key_space):
        # Filled before the tables are checked concurrently.
        return self._key_values[key_space]

    def Validate(self):
        """Check the dataset, reporting every problem found.

        Returns:
          True if no error was found.
        """
        table_list = [
            t
            for t in self._catalog.GetTableList()
            if self.dataset.HasTable(t.name)
        ]
        key_spaces = set()
        for table in table_list:
            key_spaces.update(list(table.references.values()))
        for key_space in key_spaces:
            self._key_values[key_space] = self.dataset.GetKeyValues(key_space)

        with ThreadPoolExecutor(max_workers=self.max_workers) as executor:
            results = list(executor.map(self._CheckTable, table_list))

        num_errors = 0
        for findings in results:
            for method_name, args, kwargs in findings:
                getattr(self.problem_reporter, method_name)(*args, **kwargs)
                if kwargs.get("type", TYPE_ERROR) == TYPE_ERROR:
                    num_errors += 1
        for service_id in self._FindUnusedServices():
            self.problem_reporter.ServiceUnused(service_id, type=TYPE_WARNING)
        log.info("Validated merged feed: %d error(s)", num_errors)
        return num_errors == 0

    def _CheckTable(self, table):
        """Return the problems of one table as (method, args, kwargs) tuples."""
        findings = []
        columns = self.dataset.GetTableColumns(table.name)
        column_set = set(columns)
        keys = set()
        for row_num, row in enumerate(self.dataset.GetRows(table.name), 2):
            if len(row) > len(columns) or not column_set.issuperset(row):
                findings.append(
                    (
                        "WrongNumberOfFields",
                        (table.file_name, row_num, len(columns), len(row)),
                        {"type": TYPE_WARNING},
                    )
                )
            if table.IsKeyed():
                key = table.GetKey(row)
                if key in keys:
                    findings.append(
                        (
                            "DuplicateID",
                            (table.primary_key, key),
                            {"context": (table.file_name, row_num)},
                        )
                    )
                keys.add(key)
            for column, key_space in list(table.references.items()):
                value = row.get(column)
                if util.IsEmpty(value):
                    if column in table.optional_references:
                        continue
                    value = ""
                elif value in self._GetKeyValues(key_space):
                    continue
                findings.append(
                    (
                        "ReferentialIntegrity",
                        (table.file_name, column, value, key_space),
                        {"type": TYPE_ERROR},
                    )
                )
        return findings

    def _FindUnusedServices(self):
        used = set(row.get("service_id") for row in self.dataset.GetRows("trips"))
        services = []
        for table_name in ("calendar", "calendar_dates"):
            for row in self.dataset.GetRows(table_name):
                service_id = row.get("service_id")
                if service_id not in used and service_id not in services:
                    services.append(service_id)
        return services
