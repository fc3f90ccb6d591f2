"""
变更检测与同步服务测试。
"""
import asyncio

import httpx
import pytest

from conftest import FakeTeletextClient, MemoryStorage, RecordingSnapshotStore
from teletext_mirror.core.config import CrawlerSettings
from teletext_mirror.core.exceptions import FailureKind, PageNotFoundError, RemoteError, StoreError
from teletext_mirror.models.monitor import PageState
from teletext_mirror.models.page import PageMetadata
from teletext_mirror.services.updater import TeletextUpdater


def page(page_nr, time, subpagecount, nextpg=None):
    payload = {"teletext": {"page": {"time": time, "subpagecount": subpagecount}}}
    if nextpg is not None:
        payload["teletext"]["page"]["nextpg"] = nextpg
    return PageMetadata.from_api_response(page_nr, payload)


@pytest.fixture
def client():
    return FakeTeletextClient()


@pytest.fixture
def updater(client, recording_store):
    return TeletextUpdater(client, recording_store, CrawlerSettings(start_page=100))


class TestSyncPageIfNewer:
    """单页同步测试。"""

    @pytest.mark.asyncio
    async def test_stores_images_when_newer(self, updater, client, recording_store):
        await recording_store.put_watermark(100, 499)
        recording_store.watermark_writes.clear()

        outcome = await updater.sync_page_if_newer(100, 500, 4)

        assert recording_store.watermark_reads == [100]
        assert client.image_calls == [(100, 1), (100, 2), (100, 3), (100, 4)]
        assert recording_store.snapshot_writes == [
            (100, 1, 500, b"testing"),
            (100, 2, 500, b"testing"),
            (100, 3, 500, b"testing"),
            (100, 4, 500, b"testing"),
        ]
        assert recording_store.watermark_writes == [(100, 500)]
        assert outcome.state is PageState.SYNCED
        assert outcome.snapshots_written == 4
        assert outcome.previous_timestamp == 499

    @pytest.mark.asyncio
    async def test_noop_when_same_timestamp(self, updater, client, recording_store):
        await recording_store.put_watermark(100, 500)
        recording_store.watermark_writes.clear()

        outcome = await updater.sync_page_if_newer(100, 500, 4)

        assert recording_store.watermark_reads == [100]
        assert client.image_calls == []
        assert recording_store.snapshot_writes == []
        assert recording_store.watermark_writes == []
        assert outcome.state is PageState.UP_TO_DATE

    @pytest.mark.asyncio
    async def test_noop_when_older_timestamp(self, updater, client, recording_store):
        await recording_store.put_watermark(100, 600)
        recording_store.watermark_writes.clear()

        await updater.sync_page_if_newer(100, 500, 2)

        assert client.image_calls == []
        assert recording_store.watermark_writes == []

    @pytest.mark.asyncio
    @pytest.mark.parametrize("stored", [None, b""])
    async def test_full_sync_when_never_synced(self, updater, client, recording_store, memory_storage, stored):
        if stored is not None:
            memory_storage.objects["100/LAST_TS"] = stored

        await updater.sync_page_if_newer(100, 500, 2)

        assert client.image_calls == [(100, 1), (100, 2)]
        assert recording_store.watermark_writes == [(100, 500)]

    @pytest.mark.asyncio
    async def test_end_to_end_page_100(self, updater, client, recording_store, memory_storage):
        memory_storage.objects["100/LAST_TS"] = b"1693724399"

        await updater.sync_page_if_newer(100, 1693724400, 4)

        assert len(client.image_calls) == 4
        assert [w[:3] for w in recording_store.snapshot_writes] == [
            (100, n, 1693724400) for n in range(1, 5)
        ]
        assert recording_store.watermark_writes == [(100, 1693724400)]
        assert memory_storage.objects["100/LAST_TS"] == b"1693724400"

    @pytest.mark.asyncio
    async def test_failed_subpage_leaves_watermark(self, recording_store, memory_storage):
        memory_storage.objects["100/LAST_TS"] = b"400"
        error = RemoteError("失败", "images/100/3.png", 100, 3, status=500)
        client = FakeTeletextClient(image_errors={(100, 3): error})
        updater = TeletextUpdater(client, recording_store)

        with pytest.raises(RemoteError):
            await updater.sync_page_if_newer(100, 500, 4)

        assert client.image_calls == [(100, 1), (100, 2), (100, 3)]
        assert [w[1] for w in recording_store.snapshot_writes] == [1, 2]
        assert recording_store.watermark_writes == []
        assert memory_storage.objects["100/LAST_TS"] == b"400"

    @pytest.mark.asyncio
    async def test_failed_store_write_leaves_watermark(self, client):
        storage = MemoryStorage(fail_keys={"100/2/500.png"})
        store = RecordingSnapshotStore(storage)
        updater = TeletextUpdater(client, store)

        with pytest.raises(StoreError) as exc_info:
            await updater.sync_page_if_newer(100, 500, 3)

        assert "100/2/500.png" in str(exc_info.value)
        assert client.image_calls == [(100, 1), (100, 2)]
        assert store.watermark_writes == []


class TestCrawlAndSync:
    """页面链遍历测试。"""

    @pytest.mark.asyncio
    async def test_stores_pages_newer_than_last_stored(self, recording_store, memory_storage):
        # 2023-09-03T09:00:00 赫尔辛基时间
        last_stored = 1693720800
        for page_nr in (100, 101, 102):
            memory_storage.objects[f"{page_nr}/LAST_TS"] = str(last_stored).encode()
        client = FakeTeletextClient(pages={
            100: page(100, "2023-09-03T10:00:00", "4", "101"),
            101: page(101, "2023-09-03T08:00:00", "4", "102"),
            102: page(102, "2023-09-03T10:01:00", "3"),
        })
        updater = TeletextUpdater(client, recording_store)

        report = await updater.crawl_and_sync()

        assert client.metadata_calls == [100, 101, 102]
        assert sorted(recording_store.watermark_reads) == [100, 101, 102]
        assert sorted(w[:3] for w in recording_store.snapshot_writes) == [
            (100, 1, 1693724400), (100, 2, 1693724400), (100, 3, 1693724400), (100, 4, 1693724400),
            (102, 1, 1693724460), (102, 2, 1693724460), (102, 3, 1693724460),
        ]
        assert len(client.image_calls) == 7
        assert sorted(recording_store.watermark_writes) == [(100, 1693724400), (102, 1693724460)]

        assert report.visited_pages == [100, 101, 102]
        assert report.outcomes[100].state is PageState.SYNCED
        assert report.outcomes[101].state is PageState.UP_TO_DATE
        assert report.outcomes[102].state is PageState.SYNCED
        assert report.snapshots_written == 7
        assert report.failures == []
        assert report.completed_at is not None

    @pytest.mark.asyncio
    async def test_chain_visits_each_page_once(self, recording_store):
        client = FakeTeletextClient(pages={
            100: page(100, "2023-09-03T10:00:00", "1", "101"),
            101: page(101, "2023-09-03T10:00:00", "1", "102"),
            102: page(102, "2023-09-03T10:00:00", "1", "0"),
        })

        report = await TeletextUpdater(client, recording_store).crawl_and_sync(100)

        assert client.metadata_calls == [100, 101, 102]
        assert set(report.outcomes) == {100, 101, 102}

    @pytest.mark.asyncio
    async def test_cycle_stops_walk(self, recording_store):
        client = FakeTeletextClient(pages={
            100: page(100, "2023-09-03T10:00:00", "1", "101"),
            101: page(101, "2023-09-03T10:00:00", "1", "100"),
        })

        report = await TeletextUpdater(client, recording_store).crawl_and_sync(100)

        assert client.metadata_calls == [100, 101]
        assert report.visited_pages == [100, 101]

    @pytest.mark.asyncio
    async def test_max_pages_bound(self, recording_store):
        client = FakeTeletextClient(pages={
            n: page(n, "2023-09-03T10:00:00", "1", str(n + 1)) for n in range(100, 110)
        })
        updater = TeletextUpdater(client, recording_store, CrawlerSettings(max_pages=3))

        report = await updater.crawl_and_sync(100)

        assert client.metadata_calls == [100, 101, 102]
        assert len(report.outcomes) == 3

    @pytest.mark.asyncio
    async def test_metadata_failure_ends_branch(self, recording_store):
        client = FakeTeletextClient(pages={
            100: page(100, "2023-09-03T10:00:00", "2", "101"),
            101: httpx.ConnectError("connection refused"),
            102: page(102, "2023-09-03T10:00:00", "1"),
        })

        report = await TeletextUpdater(client, recording_store).crawl_and_sync(100)

        assert client.metadata_calls == [100, 101]
        assert report.outcomes[100].state is PageState.SYNCED
        assert report.outcomes[101].state is PageState.METADATA_FETCH_FAILED
        assert report.outcomes[101].failure_kind is FailureKind.TRANSPORT_FAILURE
        assert recording_store.watermark_writes == [(100, 1693724400)]

    @pytest.mark.asyncio
    async def test_missing_page_is_not_found(self, recording_store):
        client = FakeTeletextClient(pages={100: page(100, "2023-09-03T10:00:00", "1", "150")})

        report = await TeletextUpdater(client, recording_store).crawl_and_sync(100)

        assert report.outcomes[150].state is PageState.METADATA_FETCH_FAILED
        assert report.outcomes[150].failure_kind is FailureKind.NOT_FOUND

    @pytest.mark.asyncio
    async def test_sync_failure_does_not_stop_other_pages(self, recording_store):
        client = FakeTeletextClient(
            pages={
                100: page(100, "2023-09-03T10:00:00", "2", "101"),
                101: page(101, "2023-09-03T10:00:00", "2", "102"),
                102: page(102, "2023-09-03T10:00:00", "1"),
            },
            image_errors={(101, 1): PageNotFoundError("不存在", "images/101/1.png", 101, 1)},
        )

        report = await TeletextUpdater(client, recording_store).crawl_and_sync(100)

        assert client.metadata_calls == [100, 101, 102]
        assert report.outcomes[100].state is PageState.SYNCED
        assert report.outcomes[101].state is PageState.SYNC_FAILED
        assert report.outcomes[101].failure_kind is FailureKind.NOT_FOUND
        assert report.outcomes[102].state is PageState.SYNCED
        assert sorted(recording_store.watermark_writes) == [(100, 1693724400), (102, 1693724400)]
        assert [o.page_nr for o in report.failures] == [101]

    @pytest.mark.asyncio
    async def test_walk_continues_while_sync_in_flight(self, recording_store):
        release = asyncio.Event()

        class SlowImageClient(FakeTeletextClient):
            async def fetch_subpage_image(self, page_nr, subpage_nr):
                if page_nr == 100:
                    await release.wait()
                return await super().fetch_subpage_image(page_nr, subpage_nr)

            async def fetch_page_metadata(self, page_nr):
                metadata = await super().fetch_page_metadata(page_nr)
                if page_nr == 102:
                    release.set()
                return metadata

        client = SlowImageClient(pages={
            100: page(100, "2023-09-03T10:00:00", "1", "101"),
            101: page(101, "2023-09-03T10:00:00", "1", "102"),
            102: page(102, "2023-09-03T10:00:00", "1"),
        })

        report = await asyncio.wait_for(
            TeletextUpdater(client, recording_store).crawl_and_sync(100), timeout=5
        )

        assert all(o.state is PageState.SYNCED for o in report.outcomes.values())
