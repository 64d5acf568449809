from __future__ import annotations

import asyncio
from uuid import uuid4

import pytest

from wanda.core.errors import DoubleValidation, DuplicateReport, StaleWriteError, UserAlreadyExists
from wanda.domain.moderation.models import Report, ReportReason, ReportStatus
from wanda.domain.identity.trust import TrustScore
from wanda.domain.posts.models import PostStatus
from wanda.domain.validation.models import Validation, ValidationType


@pytest.mark.asyncio
async def test_save_post_bumps_version_and_rejects_stale_revision(stores, make_user, make_post) -> None:
    post = make_post(make_user())

    saved = await stores.posts.save_post(post.with_status(PostStatus.PUBLISHED))

    assert saved.version == 2
    with pytest.raises(StaleWriteError):
        await stores.posts.save_post(post.with_status(PostStatus.SUSPECT))
    assert (await stores.posts.find_post(post.id)).status is PostStatus.PUBLISHED


@pytest.mark.asyncio
async def test_set_status_is_unconditional_and_bumps_version(stores, make_user, make_post) -> None:
    post = make_post(make_user())

    await stores.posts.set_status(post.id, PostStatus.ARCHIVED)

    stored = await stores.posts.find_post(post.id)
    assert stored.status is PostStatus.ARCHIVED
    assert stored.version == 2


@pytest.mark.asyncio
async def test_atomic_rolls_back_every_write(stores, make_user, make_post, database) -> None:
    author = make_user()
    post = make_post(author)
    voter = make_user()

    with pytest.raises(RuntimeError):
        async with stores.transactions.atomic():
            await stores.validations.save_validation(
                Validation(post_id=post.id, validator_id=voter.id, type=ValidationType.CONFIRM)
            )
            await stores.users.save_user(author.model_copy(update={"full_name": "Renamed"}))
            await stores.posts.delete_post(post.id)
            raise RuntimeError("abort")

    assert database.validations == {}
    assert database.users[author.id].full_name == author.full_name
    assert database.posts[post.id] == post


@pytest.mark.asyncio
async def test_nested_atomic_joins_outer_block(stores, make_user, make_post, database) -> None:
    post = make_post(make_user())

    with pytest.raises(ValueError):
        async with stores.transactions.atomic():
            async with stores.transactions.atomic():
                await stores.posts.set_status(post.id, PostStatus.PUBLISHED)
            raise ValueError("outer fails after inner finished")

    assert database.posts[post.id].status is PostStatus.PENDING


@pytest.mark.asyncio
async def test_cancelled_block_rolls_back(stores, make_user, make_post, database) -> None:
    post = make_post(make_user())
    entered = asyncio.Event()

    async def _slow_write() -> None:
        async with stores.transactions.atomic():
            await stores.posts.set_status(post.id, PostStatus.ARCHIVED)
            entered.set()
            await asyncio.sleep(10)

    task = asyncio.create_task(_slow_write())
    await entered.wait()
    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task

    assert database.posts[post.id].status is PostStatus.PENDING


@pytest.mark.asyncio
async def test_uniqueness_rules(stores, make_user, make_post) -> None:
    author = make_user(matricule="22B100IUT")
    voter = make_user()
    post = make_post(author)

    await stores.validations.save_validation(
        Validation(post_id=post.id, validator_id=voter.id, type=ValidationType.CONFIRM)
    )
    with pytest.raises(DoubleValidation):
        await stores.validations.save_validation(
            Validation(post_id=post.id, validator_id=voter.id, type=ValidationType.REFUTE)
        )

    await stores.reports.save_report(Report(reporter_id=voter.id, post_id=post.id, reason=ReportReason.SPAM))
    with pytest.raises(DuplicateReport):
        await stores.reports.save_report(Report(reporter_id=voter.id, post_id=post.id, reason=ReportReason.SPAM))

    clone = voter.model_copy(update={"id": uuid4(), "matricule": "22B100IUT"})
    with pytest.raises(UserAlreadyExists):
        await stores.users.save_user(clone)


@pytest.mark.asyncio
async def test_report_queries(stores, make_user, make_post) -> None:
    post = make_post(make_user())
    first, second = make_user(), make_user()
    kept = await stores.reports.save_report(Report(reporter_id=first.id, post_id=post.id, reason=ReportReason.SPAM))
    closed = await stores.reports.save_report(
        Report(reporter_id=second.id, post_id=post.id, reason=ReportReason.FAKE_NEWS)
    )
    await stores.reports.set_report_status(closed.id, ReportStatus.REJECTED)

    assert await stores.reports.count_reports_for_post(post.id) == 2
    assert await stores.reports.exists_report(first.id, post.id)
    assert [report.id for report in await stores.reports.list_pending_reports()] == [kept.id]
    assert (await stores.reports.find_report(closed.id)).status is ReportStatus.REJECTED


@pytest.mark.asyncio
async def test_rollback_keeps_a_row_committed_by_another_task(stores, make_user, database) -> None:
    author = make_user(trust=50)
    committed = author.with_trust(TrustScore(60))

    with pytest.raises(RuntimeError):
        async with stores.transactions.atomic():
            await stores.users.save_user(author.with_trust(TrustScore(55)))
            # written by a concurrent task outside this block
            database.users[author.id] = committed
            raise RuntimeError("abort")

    assert database.users[author.id] is committed


@pytest.mark.asyncio
async def test_delete_post_drops_its_validations(stores, make_user, make_post, database) -> None:
    post = make_post(make_user())
    other = make_post(make_user())
    voter = make_user()
    for target in (post, other):
        await stores.validations.save_validation(
            Validation(post_id=target.id, validator_id=voter.id, type=ValidationType.CONFIRM)
        )

    with pytest.raises(RuntimeError):
        async with stores.transactions.atomic():
            await stores.posts.delete_post(post.id)
            assert await stores.validations.count_by_type(post.id, ValidationType.CONFIRM) == 0
            raise RuntimeError("abort")
    assert await stores.validations.count_by_type(post.id, ValidationType.CONFIRM) == 1

    await stores.posts.delete_post(post.id)

    assert [vote.post_id for vote in database.validations.values()] == [other.id]
