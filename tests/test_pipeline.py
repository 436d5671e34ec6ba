# ========================
# tests/test_pipeline.py
# ========================

import unittest
import asyncio
import tempfile
import shutil
import json
import csv
import sys
import os
from pathlib import Path

# Add the project root to Python path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from src.chartor.charting import to_chart_data
from src.chartor.cleaning import DataCleaner, TagMarkerPredicate, build_predicate, remove_accent
from src.chartor.errors import FetchError
from src.chartor.merging import DatasetMerger
from src.chartor.models import (
    AggregateResult, CleanDataset, CleanRecord, MergedDataset, Stats, Totals, YearGroup,
)
from src.chartor.orchestrator import ChartPipeline, PipelineResult
from src.chartor.sources import LocalDataSource
from src.chartor.storage import ResultExporter
from src.chartor.transformation import (
    UNKNOWN_KEY, CityAggregator, IdAggregator, MuseumAggregator,
    aggregate_by_city, aggregate_by_id, aggregate_by_museum,
)
from src.utils.config import Config

HEADER = "id,name,city,country,country_code,postal_code,street,year,status,tags,stats\n"

def make_record(**overrides):
    values = {
        'id': '1', 'name': 'Musée Test', 'city': 'Paris', 'country': 'France',
        'country_code': 'fr', 'postal_code': '75001', 'street': '1 rue Test',
        'year': '2011', 'status': 'open', 'stats': Stats(payant=1, gratuit=1),
    }
    values.update(overrides)
    return CleanRecord(**values)

def make_dataset(data):
    return CleanDataset(data=data)

class StubFetcher:
    """Serves canned year groups per file name."""

    def __init__(self, files):
        self.files = files
        self.calls = []

    async def fetch_async(self, file_name):
        self.calls.append(file_name)
        await asyncio.sleep(0)
        result = self.files[file_name]
        if isinstance(result, Exception):
            raise result
        return result

class TestDataCleaner(unittest.TestCase):

    def setUp(self):
        self.cleaner = DataCleaner()

    def test_parse_stats_valid(self):
        self.assertEqual(self.cleaner.parse_stats("payant:100;gratuit:50"), Stats(100, 50))
        self.assertEqual(self.cleaner.parse_stats(" Payant : 7 ; GRATUIT:0 "), Stats(7, 0))

    def test_parse_stats_unknown_segments_ignored(self):
        self.assertEqual(self.cleaner.parse_stats("foo:bar;payant:3"), Stats(payant=3))
        self.assertEqual(self.cleaner.parse_stats("foo:bar"), Stats())
        self.assertEqual(self.cleaner.parse_stats("no colon here"), Stats())

    def test_parse_stats_bad_values_become_none(self):
        self.assertEqual(self.cleaner.parse_stats("payant:-5;gratuit:abc"), Stats())
        self.assertEqual(self.cleaner.parse_stats("payant:1.5;gratuit:"), Stats())

    def test_parse_stats_empty(self):
        self.assertEqual(self.cleaner.parse_stats(""), Stats())
        self.assertEqual(self.cleaner.parse_stats(None), Stats())

    def test_parse_stats_custom_delimiter(self):
        cleaner = DataCleaner(stats_delimiter='|')
        self.assertEqual(cleaner.parse_stats("payant:4|gratuit:2"), Stats(4, 2))

    def test_invalid_delimiter(self):
        for delimiter in ('', ':'):
            with self.assertRaises(ValueError):
                DataCleaner(stats_delimiter=delimiter)

    def test_clean_record_keeps_whitelist_only(self):
        row = {
            'id': '42', 'name': 'Louvre', 'city': 'Paris', 'country': 'France',
            'country_code': 'fr', 'postal_code': '75001', 'street': 'Rue de Rivoli',
            'year': '2011', 'status': 'open', 'phone': '0102030405',
            'stats': 'payant:100;gratuit:50',
        }

        record = self.cleaner.clean_record(row)

        self.assertIsInstance(record, CleanRecord)
        self.assertEqual(record.id, '42')
        self.assertEqual(record.stats, Stats(100, 50))
        self.assertNotIn('phone', record.to_dict())

    def test_missing_fields_become_empty(self):
        record = self.cleaner.clean_record({'id': '1', 'stats': 'payant:1'})

        self.assertEqual(record.city, '')
        self.assertEqual(record.postal_code, '')
        self.assertEqual(record.stats, Stats(payant=1))

    def test_stats_fall_back_to_tags(self):
        record = self.cleaner.clean_record({'id': '1', 'stats': '', 'tags': 'payant:9;gratuit:1'})
        self.assertEqual(record.stats, Stats(9, 1))

        record = self.cleaner.clean_record({'id': '1', 'stats': 'payant:2', 'tags': 'payant:9'})
        self.assertEqual(record.stats, Stats(payant=2))

    def test_counts_split_between_stats_and_tags(self):
        record = self.cleaner.clean_record(
            {'id': '1', 'city': 'Paris', 'stats': 'payant:100', 'tags': 'gratuit:50'}
        )
        self.assertEqual(record.stats, Stats(100, 50))

        record = self.cleaner.clean_record(
            {'id': '1', 'stats': 'payant:100;gratuit:3', 'tags': 'payant:1;gratuit:50'}
        )
        self.assertEqual(record.stats, Stats(100, 3))

    def test_split_counts_reach_city_totals(self):
        merged = MergedDataset(groups={'2011': YearGroup(data=[
            {'id': '1', 'city': 'Paris', 'stats': 'payant:100', 'tags': 'gratuit:50'},
        ])})

        result = aggregate_by_city(self.cleaner.clean(merged))

        self.assertEqual(result.data['PARIS']['2011'], Totals(100, 50))

    def test_predicate_drops_rows(self):
        cleaner = DataCleaner(predicate=TagMarkerPredicate('musee'))
        kept = cleaner.clean_record({'id': '1', 'tags': 'Musée de France'})
        dropped = cleaner.clean_record({'id': '2', 'tags': 'Galerie'})

        self.assertIsNotNone(kept)
        self.assertIsNone(dropped)
        stats = cleaner.get_statistics()
        self.assertEqual(stats['records_processed'], 2)
        self.assertEqual(stats['records_dropped'], 1)

    def test_build_predicate_from_config(self):
        self.assertIsNone(build_predicate(Config({'selection_marker': ''})))
        predicate = build_predicate(Config({'selection_marker': 'Musée', 'selection_fields': ['name']}))
        self.assertTrue(predicate({'name': 'MUSEE DES ARTS'}))
        self.assertFalse(predicate({'tags': 'musee'}))

    def test_clean_merged_dataset(self):
        merged = MergedDataset(
            groups={
                '2011': YearGroup(data=[{'id': '1', 'city': 'Paris', 'stats': 'payant:1'}], time=0.5),
                '2012': YearGroup(data=[], time=0.25),
            },
            time_load=1.0,
            time_merge=0.1,
        )

        cleaned = self.cleaner.clean(merged)

        self.assertEqual(set(cleaned.data), {'2011', '2012'})
        self.assertEqual(cleaned.data['2012'], [])
        self.assertEqual(cleaned.timings.time_load, 1.0)
        self.assertEqual(cleaned.timings.time_merge, 0.1)
        self.assertEqual(cleaned.timings.time_load_each_entry, {'2011': 0.5, '2012': 0.25})
        self.assertGreaterEqual(cleaned.timings.time_cleanup, 0.0)

    def test_cleaning_is_idempotent(self):
        merged = MergedDataset(groups={
            '2011': YearGroup(data=[{'id': '1', 'city': 'Paris', 'stats': 'payant:1;gratuit:2'}]),
        })

        once = self.cleaner.clean(merged)
        twice = self.cleaner.clean(once)

        self.assertEqual(once.data, twice.data)

    def test_clean_none(self):
        with self.assertRaises(TypeError):
            self.cleaner.clean(None)
        with self.assertRaises(TypeError):
            self.cleaner.clean({'2011': []})

    def test_remove_accent(self):
        self.assertEqual(remove_accent("Musée Saint-Étienne"), "Musee Saint-Etienne")

class TestDatasetMerger(unittest.TestCase):

    def test_merge_keys_are_union_of_years(self):
        fetcher = StubFetcher({
            '2011_data.csv': {'2011': YearGroup(data=[{'id': '1'}])},
            '2012_data.csv': {'2012': YearGroup(data=[{'id': '2'}]), '2013': YearGroup()},
        })

        merged = DatasetMerger(fetcher).merge_all(['2011_data.csv', '2012_data.csv'])

        self.assertEqual(sorted(merged.years()), ['2011', '2012', '2013'])
        self.assertGreaterEqual(merged.time_load, 0.0)
        self.assertGreaterEqual(merged.time_merge, 0.0)

    def test_empty_file_list(self):
        fetcher = StubFetcher({})
        merged = DatasetMerger(fetcher).merge_all(set())

        self.assertEqual(len(merged), 0)
        self.assertEqual(fetcher.calls, [])

    def test_later_file_wins_for_same_year(self):
        first = YearGroup(data=[{'id': 'a'}])
        second = YearGroup(data=[{'id': 'b'}])
        fetcher = StubFetcher({'a_2011.csv': {'2011': first}, 'b_2011.csv': {'2011': second}})

        with self.assertLogs('src.chartor.merging', level='WARNING'):
            merged = DatasetMerger(fetcher).merge_all(['a_2011.csv', 'b_2011.csv'])

        self.assertIs(merged.groups['2011'], second)

    def test_duplicate_names_fetched_once(self):
        fetcher = StubFetcher({'2011_data.csv': {'2011': YearGroup()}})
        DatasetMerger(fetcher).merge_all(['2011_data.csv', '2011_data.csv'])

        self.assertEqual(fetcher.calls, ['2011_data.csv'])

    def test_one_failure_fails_the_merge(self):
        fetcher = StubFetcher({
            '2011_data.csv': {'2011': YearGroup()},
            '2012_data.csv': FetchError('2012_data.csv', 'boom'),
        })

        with self.assertRaises(FetchError):
            DatasetMerger(fetcher).merge_all(['2011_data.csv', '2012_data.csv'])

    def test_invalid_file_list(self):
        merger = DatasetMerger(StubFetcher({}))
        with self.assertRaises(TypeError):
            merger.merge_all(None)
        with self.assertRaises(TypeError):
            merger.merge_all('2011_data.csv')

class TestAggregators(unittest.TestCase):

    def test_city_totals(self):
        dataset = make_dataset({
            '2011': [
                make_record(id='1', city='Paris', stats=Stats(100, 50)),
                make_record(id='2', city='paris', stats=Stats(10, 5)),
                make_record(id='3', city='Lyon', stats=Stats(1, 0)),
            ],
            '2012': [make_record(id='1', city='Paris', stats=Stats(200, 0))],
        })

        result = aggregate_by_city(dataset)

        self.assertEqual(result.name, 'by_city')
        self.assertEqual(result.data['PARIS']['2011'], Totals(110, 55))
        self.assertEqual(result.data['PARIS']['2012'], Totals(200, 0))
        self.assertEqual(result.data['LYON'], {'2011': Totals(1, 0)})

    def test_missing_stats_add_nothing(self):
        dataset = make_dataset({'2011': [
            make_record(stats=Stats(payant=None, gratuit=4)),
            make_record(stats=Stats()),
        ]})

        result = aggregate_by_city(dataset)

        self.assertEqual(result.data['PARIS']['2011'], Totals(0, 4))

    def test_record_order_does_not_change_totals(self):
        records = [
            make_record(id=str(i), city=city, stats=Stats(i, i * 2))
            for i, city in enumerate(['Paris', 'Lyon', 'Paris', 'Nice', 'Lyon'])
        ]

        forward = aggregate_by_city(make_dataset({'2011': records}))
        backward = aggregate_by_city(make_dataset({'2011': list(reversed(records))}))

        self.assertEqual(forward.data, backward.data)

    def test_empty_city(self):
        dataset = make_dataset({'2011': [make_record(city='  '), make_record(city='Paris')]})

        self.assertEqual(CityAggregator().aggregate(dataset).keys(), ['PARIS'])
        bucketed = CityAggregator(drop_empty=False).aggregate(dataset)
        self.assertIn(UNKNOWN_KEY, bucketed.data)

    def test_museum_key_is_upper_name(self):
        dataset = make_dataset({'2011': [
            make_record(name='Musée du Louvre', stats=Stats(3, 1)),
            make_record(name='MUSÉE DU LOUVRE', stats=Stats(2, 0)),
        ]})

        result = aggregate_by_museum(dataset)

        self.assertEqual(result.data, {'MUSÉE DU LOUVRE': {'2011': Totals(5, 1)}})

    def test_museum_key_ignores_surrounding_spaces(self):
        dataset = make_dataset({'2011': [
            make_record(name='Louvre ', stats=Stats(3, 1)),
            make_record(name='  louvre', stats=Stats(2, 0)),
        ]})

        result = aggregate_by_museum(dataset)

        self.assertEqual(result.data, {'LOUVRE': {'2011': Totals(5, 1)}})

    def test_id_aggregation_last_record_wins(self):
        first = make_record(id='7', name='First')
        second = make_record(id='7', name='Second')

        result = aggregate_by_id(make_dataset({'2011': [first, second]}))
        self.assertIs(result.data['7']['2011'], second)

        result = aggregate_by_id(make_dataset({'2011': [second, first]}))
        self.assertIs(result.data['7']['2011'], first)

    def test_id_aggregation_keeps_years_apart(self):
        dataset = make_dataset({
            '2011': [make_record(id='1', year='2011')],
            '2012': [make_record(id='1', year='2012')],
        })

        result = IdAggregator().aggregate(dataset)

        self.assertEqual(sorted(result.data['1']), ['2011', '2012'])

    def test_invalid_input(self):
        for aggregator in (IdAggregator(), CityAggregator(), MuseumAggregator()):
            with self.assertRaises(TypeError):
                aggregator.aggregate(None)
            with self.assertRaises(TypeError):
                aggregator.aggregate({'2011': []})

class TestChartData(unittest.TestCase):

    def setUp(self):
        self.result = AggregateResult(name='by_city', data={
            'PARIS': {'2011': Totals(100, 50), '2012': Totals(200, 0)},
            'LYON': {'2012': Totals(10, 10)},
            'NICE': {'2011': Totals(1, 1)},
        })

    def test_labels_and_missing_years(self):
        chart = to_chart_data(self.result)

        self.assertEqual(chart['labels'], ['2011', '2012'])
        by_label = {dataset['label']: dataset['data'] for dataset in chart['datasets']}
        self.assertEqual(by_label['PARIS'], [100, 200])
        self.assertEqual(by_label['LYON'], [0, 10])

    def test_limit_keeps_largest(self):
        chart = to_chart_data(self.result, metric='total', limit=2)

        self.assertEqual([dataset['label'] for dataset in chart['datasets']], ['PARIS', 'LYON'])
        self.assertEqual(chart['datasets'][0]['data'], [150, 200])

    def test_selected_keys(self):
        chart = to_chart_data(self.result, metric='gratuit', keys=['NICE', 'MISSING'])

        self.assertEqual(chart, {'labels': ['2011'], 'datasets': [{'label': 'NICE', 'data': [1]}]})

    def test_id_aggregate_values(self):
        by_id = AggregateResult(name='by_id', data={'1': {'2011': make_record(stats=Stats(4, None))}})

        chart = to_chart_data(by_id, metric='total')

        self.assertEqual(chart['datasets'][0]['data'], [4])

    def test_invalid_arguments(self):
        with self.assertRaises(TypeError):
            to_chart_data(None)
        with self.assertRaises(ValueError):
            to_chart_data(self.result, metric='visitors')
        with self.assertRaises(ValueError):
            to_chart_data(self.result, limit=-1)

class TestChartPipeline(unittest.TestCase):
    """End-to-end runs over a temporary data directory."""

    def setUp(self):
        self.data_dir = Path(tempfile.mkdtemp())
        self.output_dir = Path(tempfile.mkdtemp())
        self.write("2011_data.csv", HEADER + "1,Louvre,Paris,France,fr,75001,Rue de Rivoli,,open,,payant:100;gratuit:50\n")
        self.write("2012_data.csv", HEADER + "1,Louvre,Paris,France,fr,75001,Rue de Rivoli,,open,,payant:200;gratuit:0\n")
        self.write("laposte_hexasmal.csv", (
            "code_commune_insee;nom_de_la_commune;code_postal;ligne_5\n"
            "75056;PARIS;75001;\n"
            "69123;LYON;69001;\n"
        ))
        self.config = Config({'data_dir': str(self.data_dir), 'output_dir': str(self.output_dir)})

    def tearDown(self):
        shutil.rmtree(self.data_dir, ignore_errors=True)
        shutil.rmtree(self.output_dir, ignore_errors=True)

    def write(self, name, content):
        (self.data_dir / name).write_text(content, encoding='utf-8')

    def test_city_aggregation_across_years(self):
        result = ChartPipeline(config=self.config).run()

        self.assertIsInstance(result, PipelineResult)
        self.assertEqual(result.by_city.data, {
            'PARIS': {'2011': Totals(100, 50), '2012': Totals(200, 0)},
        })
        self.assertEqual(result.by_museum.keys(), ['LOUVRE'])
        self.assertIsNone(result.by_department)

    def test_reference_file_is_not_charted(self):
        pipeline = ChartPipeline(config=self.config)

        self.assertEqual(
            pipeline.select_files(LocalDataSource(self.data_dir).list_files()),
            ['2011_data.csv', '2012_data.csv'],
        )
        result = pipeline.run()
        self.assertEqual(sorted(result.cleaned.data), ['2011', '2012'])

    def test_timing_report(self):
        timings = ChartPipeline(config=self.config).run().timings

        self.assertGreaterEqual(timings.time_load, 0.0)
        self.assertGreaterEqual(timings.time_merge, 0.0)
        self.assertGreaterEqual(timings.time_cleanup, 0.0)
        self.assertEqual(set(timings.time_load_each_entry), {'2011', '2012'})
        self.assertEqual(set(timings.aggregations), {'by_id', 'by_city', 'by_museum'})

    def test_department_aggregation(self):
        self.write("2013_data.csv", (
            HEADER
            + "2,Musée des Confluences,Lyon,France,fr,,,,open,,payant:5;gratuit:5\n"
            + "3,Musée Magritte,Bruxelles,Belgique,be,,,,open,,payant:7\n"
        ))
        self.config.ENABLE_DEPARTMENT_AGGREGATION = True

        result = ChartPipeline(config=self.config).run()

        self.assertEqual(result.by_department.data['75'], {
            '2011': Totals(100, 50), '2012': Totals(200, 0),
        })
        self.assertEqual(result.by_department.data['69'], {'2013': Totals(5, 5)})
        self.assertEqual(result.by_department.data['other'], {'2013': Totals(7, 0)})
        self.assertIn('by_department', result.timings.aggregations)

    def test_broken_file_fails_the_run(self):
        self.write("data.csv", HEADER)
        self.write("nodate.csv", HEADER + "9,X,Paris,France,fr,75001,,,open,,payant:1\n")

        with self.assertRaises(FetchError):
            ChartPipeline(config=self.config).run()

    def test_export_results(self):
        result = ChartPipeline(config=self.config).run()

        saved = ResultExporter(str(self.output_dir)).save_all(result)

        self.assertEqual(
            set(saved),
            {'by_id', 'by_city', 'by_city_csv', 'by_museum', 'by_museum_csv', 'timings'},
        )
        with open(saved['by_city'], encoding='utf-8') as f:
            payload = json.load(f)
        self.assertEqual(payload['data']['PARIS']['2011'], {'payant': 100, 'gratuit': 50})
        with open(saved['by_city_csv'], newline='', encoding='utf-8') as f:
            rows = list(csv.DictReader(f))
        self.assertEqual(rows[0], {'key': 'PARIS', 'year': '2011', 'payant': '100', 'gratuit': '50', 'total': '150'})

if __name__ == '__main__':
    unittest.main()
