"""Tests for the region-chunked feature search."""

import asyncio

import pytest

from feature_gallery.config import SearchConfig
from feature_gallery.error_handler import ErrorHandler, ErrorType
from feature_gallery.feature_search import (
    RegionChunkedSearcher, feature_matches, get_feature_id, get_feature_name,
    iter_chunks, pad_match
)
from feature_gallery.models import Assembly, Region, SearchMatch, SimpleFeature
from feature_gallery.session import StaticSessionContext

from conftest import FailingFeatureService, make_session, make_track


def gene(name, start, end, ref='chr1', **attrs):
    data = {'refName': ref, 'start': start, 'end': end, 'type': 'gene', 'ID': name, 'Name': name}
    data.update(attrs)
    return data


class TestHelpers:
    """Test cases for identity, naming, matching and chunking helpers."""

    def test_identity_chain(self):
        assert get_feature_id(SimpleFeature({'ID': 'A', 'id': 'b', 'Name': 'c'})) == 'A'
        assert get_feature_id(SimpleFeature({'Name': 'c', 'name': 'd'})) == 'c'
        assert get_feature_id(SimpleFeature({'refName': 'chr1', 'start': 1, 'end': 9})) == 'chr1:1-9'

    def test_name_chain(self):
        assert get_feature_name(SimpleFeature({'Name': 'N', 'ID': 'I'})) == 'N'
        assert get_feature_name(SimpleFeature({'id': 'i'})) == 'i'
        assert get_feature_name(SimpleFeature({})) == 'Unnamed feature'

    def test_match_fields(self):
        feature = SimpleFeature({'ID': 'g1', 'product': 'Breast cancer type 1 susceptibility protein'})
        assert feature_matches(feature, 'CANCER')
        assert feature_matches(SimpleFeature({'locus_tag': 'b0001'}), 'b000')
        assert feature_matches(SimpleFeature({'gene_name': ['abc', 'BRCA2']}), 'brca')
        assert not feature_matches(SimpleFeature({'ID': 'TP53', 'seq': 'BRCA'}), 'brca')

    def test_chunks_clip_last(self):
        chunks = list(iter_chunks(Region('chr1', 0, 2_500_000), 1_000_000))
        assert [(c.start, c.end) for c in chunks] == [(0, 1_000_000), (1_000_000, 2_000_000), (2_000_000, 2_500_000)]

    def test_empty_region_has_no_chunks(self):
        assert list(iter_chunks(Region('chr1', 100, 100), 1_000_000)) == []

    @pytest.mark.parametrize('chunk_size', [0, -1])
    def test_non_positive_chunk_size_rejected(self, chunk_size):
        with pytest.raises(ValueError):
            list(iter_chunks(Region('chr1', 0, 10), chunk_size))

    def test_pad_match(self):
        assert pad_match(SearchMatch('chr1', 3, 50), 5) == Region('chr1', 0, 55)
        assert pad_match(SearchMatch('chr1', 100, None), 5) == Region('chr1', 95, 106)
        assert pad_match(SearchMatch(None, 100, 200), 5) is None


class TestRangeSearch:
    """Test cases for the range-query tier."""

    @pytest.fixture
    def handler(self):
        return ErrorHandler()

    @pytest.mark.asyncio
    async def test_finds_matches_with_location_and_track(self, handler):
        session = make_session([gene('BRCA1', 43044294, 43125482, ref='chr17'),
                                gene('TP53', 7661779, 7687538, ref='chr17')],
                               regions=[Region('chr17', 0, 83_257_441)])
        searcher = RegionChunkedSearcher(session, SearchConfig(), handler)

        outcome = await searcher.search('hg38', 'genes', 'BRCA')

        assert outcome.tier == 'range'
        assert len(outcome) == 1
        result = outcome.results[0]
        assert result.id == 'BRCA1'
        assert result.name == 'BRCA1'
        assert result.type == 'gene'
        assert result.location == 'chr17:43044294-43125482'
        assert result.track_id == 'genes'

    @pytest.mark.asyncio
    async def test_request_shape(self, handler):
        session = make_session([], regions=[Region('chr1', 0, 1_500_000)])
        searcher = RegionChunkedSearcher(session, SearchConfig(), handler)

        await searcher.search('hg38', 'genes', 'BRCA')

        calls = session.feature_service.calls
        assert len(calls) == 2
        assert calls[0]['sessionId'] == 'test-session'
        assert calls[0]['regions'] == [{'refName': 'chr1', 'start': 0, 'end': 1_000_000, 'assemblyName': 'hg38'}]
        assert calls[1]['regions'][0]['end'] == 1_500_000
        assert calls[0]['adapterConfig']['type'] == 'Gff3TabixAdapter'

    @pytest.mark.asyncio
    async def test_cap_stops_further_chunks(self, handler):
        features = [gene(f'BRCA{i}', 100 + i * 10, 105 + i * 10) for i in range(8)]
        session = make_session(features, regions=[Region('chr1', 0, 5_000_000), Region('chr2', 0, 1_000_000)])
        searcher = RegionChunkedSearcher(session, SearchConfig(), handler)

        outcome = await searcher.search('hg38', 'genes', 'brca')

        assert len(outcome) == 5
        assert [r.id for r in outcome] == ['BRCA0', 'BRCA1', 'BRCA2', 'BRCA3', 'BRCA4']
        assert len(session.feature_service.calls) == 1

    @pytest.mark.asyncio
    async def test_cap_follows_region_then_chunk_order(self, handler):
        features = (
            [gene(f'BRCA-late{i}', 1_500_000 + i, 1_500_010 + i) for i in range(3)]
            + [gene(f'BRCA-early{i}', 100 + i, 110 + i) for i in range(2)]
            + [gene(f'BRCA-other{i}', 100 + i, 110 + i, ref='chr2') for i in range(4)]
        )
        session = make_session(features, regions=[Region('chr1', 0, 2_000_000), Region('chr2', 0, 1_000_000)])
        searcher = RegionChunkedSearcher(session, SearchConfig(), handler)

        outcome = await searcher.search('hg38', 'genes', 'brca')

        assert [r.id for r in outcome] == [
            'BRCA-early0', 'BRCA-early1', 'BRCA-late0', 'BRCA-late1', 'BRCA-late2',
        ]
        assert len(session.feature_service.calls) == 2

    @pytest.mark.asyncio
    async def test_invalid_chunk_size_ends_search(self, handler):
        config = SearchConfig()
        config.chunk_size = 0
        searcher = RegionChunkedSearcher(make_session([gene('BRCA1', 100, 200)]), config, handler)

        outcome = await asyncio.wait_for(searcher.search('hg38', 'genes', 'BRCA'), timeout=5)

        assert len(outcome) == 0
        assert len(handler.error_history) == 1

    @pytest.mark.asyncio
    async def test_spanning_feature_reported_once(self, handler):
        session = make_session([gene('BRCA1', 900_000, 1_100_000)], regions=[Region('chr1', 0, 2_000_000)])
        searcher = RegionChunkedSearcher(session, SearchConfig(), handler)

        outcome = await searcher.search('hg38', 'genes', 'BRCA')

        assert len(session.feature_service.calls) == 2
        assert [r.id for r in outcome] == ['BRCA1']

    @pytest.mark.asyncio
    async def test_same_id_different_location_gets_unique_id(self, handler):
        session = make_session([gene('BRCA1', 100, 200), gene('BRCA1', 5000, 6000)])
        searcher = RegionChunkedSearcher(session, SearchConfig(), handler)

        outcome = await searcher.search('hg38', 'genes', 'BRCA')

        assert [r.id for r in outcome] == ['BRCA1', 'BRCA1@chr1:5000-6000']

    @pytest.mark.asyncio
    async def test_failing_chunk_is_skipped(self, handler):
        service = FailingFeatureService([gene('BRCA1', 100, 200), gene('BRCA2', 1_200_000, 1_200_500)],
                                        fail_starts=[0])
        session = make_session(regions=[Region('chr1', 0, 2_000_000)])
        session.feature_service = service
        searcher = RegionChunkedSearcher(session, SearchConfig(), handler)

        outcome = await searcher.search('hg38', 'genes', 'BRCA')

        assert [r.id for r in outcome] == ['BRCA2']
        assert handler.error_history[0].error_type == ErrorType.FEATURE_RETRIEVAL
        assert handler.error_history[0].item_id == 'chr1:0-1000000'

    @pytest.mark.asyncio
    async def test_chunk_timeout(self, handler):
        class HangingService:
            async def call(self, session_id, method, args):
                await asyncio.sleep(10)
                return []

        session = make_session(regions=[Region('chr1', 0, 1_000_000)])
        session.feature_service = HangingService()
        searcher = RegionChunkedSearcher(session, SearchConfig(chunk_timeout_seconds=0.01), handler)

        outcome = await searcher.search('hg38', 'genes', 'BRCA')

        assert len(outcome) == 0
        assert handler.error_history[0].error_type == ErrorType.NETWORK_TIMEOUT

    @pytest.mark.asyncio
    async def test_content_extractor_merged(self, handler):
        session = make_session([gene('BRCA1', 100, 200, image='a.png')])
        searcher = RegionChunkedSearcher(session, SearchConfig(), handler)

        outcome = await searcher.search('hg38', 'genes', 'BRCA',
                                        content_extractor=lambda f: {'images': f.get('image')})

        assert outcome.results[0].extra == {'images': 'a.png'}
        assert outcome.results[0].to_dict()['images'] == 'a.png'

    @pytest.mark.asyncio
    async def test_location_falls_back_to_query_bounds(self, handler):
        class NoCoords:
            def get(self, key):
                return {'ID': 'BRCA9', 'type': None}.get(key)

        class Service:
            async def call(self, session_id, method, args):
                return [NoCoords()]

        session = make_session(regions=[Region('chr3', 0, 500)])
        session.feature_service = Service()
        searcher = RegionChunkedSearcher(session, SearchConfig(), handler)

        outcome = await searcher.search('hg38', 'genes', 'BRCA')

        assert outcome.results[0].location == 'chr3:0-500'
        assert outcome.results[0].type == 'Unknown'


class TestTextIndexSearch:
    """Test cases for the text-index tier and its fallback."""

    @pytest.fixture
    def handler(self):
        return ErrorHandler()

    @pytest.mark.asyncio
    async def test_index_hits_fetched_without_refilter(self, handler):
        # The index matched an alias, so the feature itself does not contain the query
        session = make_session(
            [gene('GENE42', 1000, 2000, ref='chr1')],
            tracks=[make_track(text_search=True)],
            text_index={'genes': [{'name': 'GENE42', 'aliases': ['BRCA-like'], 'refName': 'chr1', 'start': 1000, 'end': 2000}]},
        )
        searcher = RegionChunkedSearcher(session, SearchConfig(), handler)

        outcome = await searcher.search('hg38', 'genes', 'brca')

        assert outcome.tier == 'index'
        assert [r.id for r in outcome] == ['GENE42']
        assert session.feature_service.calls[0]['regions'][0]['start'] == 995
        assert session.feature_service.calls[0]['regions'][0]['end'] == 2005

    @pytest.mark.asyncio
    async def test_empty_index_falls_back_to_range(self, handler):
        session = make_session(
            [gene('BRCA1', 100, 200)],
            tracks=[make_track(text_search=True)],
            text_index={'genes': []},
        )
        searcher = RegionChunkedSearcher(session, SearchConfig(), handler)

        outcome = await searcher.search('hg38', 'genes', 'BRCA')

        assert outcome.tier == 'range'
        assert [r.id for r in outcome] == ['BRCA1']

    @pytest.mark.asyncio
    async def test_failing_index_falls_back_to_range(self, handler):
        session = make_session([gene('BRCA1', 100, 200)], tracks=[make_track(text_search=True)])

        async def broken(track, query, limit):
            raise RuntimeError("index offline")

        session.text_search = broken
        searcher = RegionChunkedSearcher(session, SearchConfig(), handler)

        outcome = await searcher.search('hg38', 'genes', 'BRCA')

        assert outcome.tier == 'range'
        assert len(outcome) == 1

    @pytest.mark.asyncio
    async def test_match_without_refname_skipped(self, handler):
        session = make_session(
            [gene('BRCA1', 100, 200)],
            tracks=[make_track(text_search=True)],
            text_index={'genes': [{'name': 'BRCA1', 'start': 100, 'end': 200}]},
        )
        searcher = RegionChunkedSearcher(session, SearchConfig(), handler)

        outcome = await searcher.search('hg38', 'genes', 'BRCA')

        # Nothing resolved from the index, so the range tier ran
        assert outcome.tier == 'range'
        assert [r.id for r in outcome] == ['BRCA1']


class TestSearchFailures:
    """Test cases for rejected input and top-level failures."""

    @pytest.fixture
    def handler(self):
        return ErrorHandler()

    @pytest.mark.asyncio
    async def test_short_query_is_noop(self, handler):
        session = make_session([gene('BRCA1', 100, 200)])
        searcher = RegionChunkedSearcher(session, SearchConfig(), handler)

        outcome = await searcher.search('hg38', 'genes', '  BR ')

        assert len(outcome) == 0
        assert session.feature_service.calls == []

    @pytest.mark.asyncio
    async def test_unknown_assembly_returns_empty(self, handler):
        searcher = RegionChunkedSearcher(make_session(), SearchConfig(), handler)

        outcome = await searcher.search('mm10', 'genes', 'BRCA')

        assert len(outcome) == 0
        assert handler.error_history[-1].error_type == ErrorType.ASSEMBLY_RESOLUTION

    @pytest.mark.asyncio
    async def test_unknown_track_returns_empty(self, handler):
        searcher = RegionChunkedSearcher(make_session(), SearchConfig(), handler)

        outcome = await searcher.search('hg38', 'nope', 'BRCA')

        assert len(outcome) == 0
        assert handler.error_history[-1].error_type == ErrorType.TRACK_RESOLUTION

    @pytest.mark.asyncio
    async def test_track_without_adapter_returns_empty(self, handler):
        track = make_track()
        track.adapter = None
        session = StaticSessionContext([Assembly('hg38', [Region('chr1', 0, 100)])], [track])
        searcher = RegionChunkedSearcher(session, SearchConfig(), handler)

        outcome = await searcher.search('hg38', 'genes', 'BRCA')

        assert len(outcome) == 0
        assert handler.error_history[-1].error_type == ErrorType.TRACK_RESOLUTION

    @pytest.mark.asyncio
    async def test_custom_max_results(self, handler):
        features = [gene(f'BRCA{i}', 100 + i, 101 + i) for i in range(5)]
        searcher = RegionChunkedSearcher(make_session(features), SearchConfig(max_results=2), handler)

        outcome = await searcher.search('hg38', 'genes', 'BRCA')

        assert len(outcome) == 2
