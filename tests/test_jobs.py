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

# Unit tests for the jobs module.

import unittest

import feedmerge
from tests import util


class RunJobTestCase(util.TestCase):
    def setUp(self):
        self.active = util.MakeFeed(
            [("svcA", "20170901", "20170930")], [("a1", "svcA", 8)]
        )
        self.future = util.MakeFeed(
            [("svcF", "20170920", "20171231")], [("f1", "svcF", 9)], version=2
        )
        self.sink = feedmerge.MemorySink()

    def testServicePeriodJob(self):
        job = feedmerge.ServicePeriodMerge(self.active, self.future, "sp")
        result = feedmerge.RunJob(job, sink=self.sink)
        self.assertFalse(result.failed)
        self.assertEqual(feedmerge.SERVICE_PERIOD, result.mode)
        self.assertEqual(feedmerge.STRATEGY_DEFAULT, result.strategy_used)
        self.assertTrue("sp" in self.sink.datasets)

    def testServicePeriodJobInputOrderDoesNotMatter(self):
        job = feedmerge.ServicePeriodMerge(self.future, self.active, "sp")
        result = feedmerge.RunJob(job, sink=self.sink)
        self.assertFalse(result.failed)
        calendar = util.GetRowsById(result.dataset, "calendar", "service_id")
        self.assertEqual("20170919", calendar["svcA"]["end_date"])

    def testRegionalJob(self):
        other = util.MakeFeed(
            [("svcA", "20170901", "20170930")],
            [("a1", "svcA", 8)],
            feed_source_name="Other",
        )
        job = feedmerge.RegionalMerge((self.active, other), "region")
        result = feedmerge.RunJob(job, sink=self.sink, max_workers=2)
        self.assertFalse(result.failed)
        self.assertEqual(feedmerge.REGIONAL, result.mode)
        self.assertEqual(None, result.strategy_used)
        self.assertEqual(2, result.row_counts["trips"])
        self.assertEqual(result.dataset, self.sink.datasets["region"])

    def testUnknownJob(self):
        self.assertRaises(ValueError, feedmerge.RunJob, ("merge", "these"))


if __name__ == "__main__":
    unittest.main()
