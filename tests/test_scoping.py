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

# Unit tests for the scoping module.

import unittest

import feedmerge
from feedmerge import scoping
from feedmerge import tables
from tests import util

AGENCY_WITHOUT_ID = (
    "agency_name,agency_url,agency_timezone\n"
    "Other Agency,http://example.org,America/Los_Angeles\n"
)

ROUTES_WITHOUT_AGENCY = "route_id,route_short_name,route_type\nr1,1,3\n"


class ScopeTokenTestCase(util.TestCase):
    def testToken(self):
        dataset = util.MakeFeed([], [], version=2)
        self.assertEqual("Fake_Agency2", scoping.MakeScopeToken(dataset))

    def testRepeatedTokensAreMadeUnique(self):
        a = util.MakeFeed([], [], version=1)
        b = util.MakeFeed([], [], version=1)
        c = util.MakeFeed([], [], feed_source_name="Other", version=1)
        self.assertEqual(
            ["Fake_Agency1", "Fake_Agency1_2", "Other1"],
            scoping.MakeScopeTokens([a, b, c]),
        )

    def testScopeIdIsIdempotent(self):
        scoped = feedmerge.ScopeId("Fake_Agency2", "stop1")
        self.assertEqual("Fake_Agency2:stop1", scoped)
        self.assertEqual(scoped, feedmerge.ScopeId("Fake_Agency2", scoped))


class ScopeMapTestCase(util.TestCase):
    def setUp(self):
        self.scope_map = feedmerge.ScopeMap()
        self.catalog = tables.GetCatalog()

    def testUnscopedIdsAreUnchanged(self):
        self.assertEqual("s1", self.scope_map.Resolve(0, tables.STOP_ID, "s1"))
        self.assertFalse(self.scope_map.IsScoped(0, tables.STOP_ID, "s1"))

    def testEntryWinsOverDatasetScope(self):
        self.scope_map.ScopeDataset(1, "B1")
        self.scope_map.Add(1, tables.SERVICE_ID, "late", "late")
        self.assertEqual("B1:s1", self.scope_map.Resolve(1, tables.STOP_ID, "s1"))
        self.assertEqual(
            "late", self.scope_map.Resolve(1, tables.SERVICE_ID, "late")
        )
        self.assertEqual("", self.scope_map.Resolve(1, tables.STOP_ID, ""))

    def testResolveIsRepeatable(self):
        self.scope_map.ScopeDataset(1, "B1")
        first = self.scope_map.Resolve(1, tables.ROUTE_ID, "r1")
        self.assertEqual(first, self.scope_map.Resolve(1, tables.ROUTE_ID, "r1"))

    def testRewriteRow(self):
        self.scope_map.ScopeDataset(1, "B1")
        row = {
            "from_stop_id": "s1",
            "to_stop_id": "s2",
            "transfer_type": "2",
            "from_route_id": "",
        }
        new_row = self.scope_map.RewriteRow(
            1, self.catalog.GetTable("transfers"), row
        )
        self.assertEqual(
            {
                "from_stop_id": "B1:s1",
                "to_stop_id": "B1:s2",
                "transfer_type": "2",
                "from_route_id": "",
            },
            new_row,
        )
        self.assertEqual("s1", row["from_stop_id"])

    def testBlankAgencyIdIsFilledOnlyInAgencyTables(self):
        self.scope_map.SetDefaultAgencyId(0, "merged_4")
        routes = self.catalog.GetTable("routes")
        fares = self.catalog.GetTable("fare_attributes")
        self.assertEqual(
            "merged_4",
            self.scope_map.RewriteRow(0, routes, {"route_id": "r1"})["agency_id"],
        )
        self.assertEqual(
            "", self.scope_map.RewriteRow(0, fares, {"agency_id": ""})["agency_id"]
        )


class IdScopeResolverTestCase(util.TestCase):
    def setUp(self):
        self.accumulator = util.RecordingProblemAccumulator(self)
        self.problem_reporter = feedmerge.MergeProblemReporter(self.accumulator)

    def _MakeResolver(self, datasets, mode):
        self.feed_merger = feedmerge.FeedMerger(
            datasets, mode, "merged", problem_reporter=self.problem_reporter
        )
        return feedmerge.IdScopeResolver(self.feed_merger)

    def testRegionalScopesAllButFirstFeed(self):
        a = util.MakeFeed([("svc", "20170901", "20170930")], [("t1", "svc", 8)])
        b = util.MakeFeed(
            [("svc", "20170901", "20170930")], [("t1", "svc", 8)], version=2
        )
        resolver = self._MakeResolver([a, b], feedmerge.REGIONAL)
        scope_map = resolver.ResolveRegional()
        self.assertEqual("t1", scope_map.Resolve(0, tables.TRIP_ID, "t1"))
        self.assertEqual(
            "Fake_Agency2:t1", scope_map.Resolve(1, tables.TRIP_ID, "t1")
        )
        self.assertEqual("FA", scope_map.GetDefaultAgencyId(0))
        self.assertEqual("Fake_Agency2:FA", scope_map.GetDefaultAgencyId(1))
        self.accumulator.AssertNoMoreExceptions()

    def testRegionalGeneratesMissingAgencyId(self):
        a = util.MakeFeed([("svc", "20170901", "20170930")], [("t1", "svc", 8)])
        b = util.MakeFeed(
            [("svc", "20170901", "20170930")],
            [("t1", "svc", 8)],
            version=2,
            agency=AGENCY_WITHOUT_ID,
            routes=ROUTES_WITHOUT_AGENCY,
        )
        resolver = self._MakeResolver([a, b], feedmerge.REGIONAL)
        scope_map = resolver.ResolveRegional()
        e = self.accumulator.PopException("AgencyIdGenerated")
        self.assertMatchesRegex(r"^merged_\d+$", e.agency_id)
        self.assertEqual(e.agency_id, scope_map.GetDefaultAgencyId(1))
        self.accumulator.AssertNoMoreExceptions()

    def testServicePeriodCollisions(self):
        active = util.MakeFeed(
            [("svc", "20170901", "20170930")], [("t1", "svc", 8)]
        )
        future = util.MakeFeed(
            [("svc", "20170920", "20171231")],
            [("t1", "svc", 8)],
            version=2,
            stops=util.STOPS.replace("Second Street", "Second Avenue"),
        )
        resolver = self._MakeResolver([active, future], feedmerge.SERVICE_PERIOD)
        scope_map = resolver.ResolveServicePeriod(0, 1)

        e = self.accumulator.PopException("SameIdButNotMerged")
        self.assertEqual("s2", e.id)
        self.assertEqual("Fake_Agency1:s2", e.new_id)
        self.assertEqual("stops.txt", e.file_name)
        self.accumulator.AssertNoMoreExceptions()

        self.assertEqual("s1", scope_map.Resolve(0, tables.STOP_ID, "s1"))
        self.assertEqual(
            "Fake_Agency1:s2", scope_map.Resolve(0, tables.STOP_ID, "s2")
        )
        self.assertEqual("s2", scope_map.Resolve(1, tables.STOP_ID, "s2"))
        self.assertEqual(
            "Fake_Agency1:svc", scope_map.Resolve(0, tables.SERVICE_ID, "svc")
        )
        self.assertEqual("t1", scope_map.Resolve(0, tables.TRIP_ID, "t1"))
        self.assertEqual(set(["s1", "s3"]), resolver.unified[tables.STOP_ID])
        self.assertEqual(set(["r1"]), resolver.unified[tables.ROUTE_ID])
        self.assertEqual(set(["FA"]), resolver.unified[tables.AGENCY_ID])

    def testServicePeriodSharesGeneratedAgencyId(self):
        active = util.MakeFeed(
            [("svc", "20170901", "20170930")],
            [("t1", "svc", 8)],
            agency=AGENCY_WITHOUT_ID,
            routes=ROUTES_WITHOUT_AGENCY,
        )
        future = util.MakeFeed(
            [("svc", "20170920", "20171231")],
            [("t1", "svc", 8)],
            version=2,
            agency=AGENCY_WITHOUT_ID,
            routes=ROUTES_WITHOUT_AGENCY,
        )
        resolver = self._MakeResolver([active, future], feedmerge.SERVICE_PERIOD)
        scope_map = resolver.ResolveServicePeriod(0, 1)
        e = self.accumulator.PopException("AgencyIdGenerated")
        self.assertMatchesRegex(r"^merged_\d+$", e.agency_id)
        self.assertEqual(e.agency_id, scope_map.GetDefaultAgencyId(0))
        self.assertEqual(e.agency_id, scope_map.GetDefaultAgencyId(1))

    def testCollisions(self):
        a = util.MakeFeed([("x", "20170901", "20170930")], [("t1", "x", 8)])
        b = util.MakeFeed(
            [("x", "20170901", "20170930")],
            [("t2", "x", 8), ("t1", "x", 9)],
            version=2,
        )
        resolver = self._MakeResolver([a, b], feedmerge.SERVICE_PERIOD)
        self.assertEqual(["t1"], resolver.GetCollisions(tables.TRIP_ID, 0, 1))
        self.assertEqual(
            ["s1", "s2", "s3"], resolver.GetCollisions(tables.STOP_ID, 0, 1)
        )


if __name__ == "__main__":
    unittest.main()
