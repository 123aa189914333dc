"""Basic usage example for notelens."""

from notelens import AnalyticsStore, InvalidMetric, Settings
from notelens.sample import generate_sample_data


def main():
    """Demonstrate notelens capabilities on an in-memory sample warehouse."""
    store = AnalyticsStore(Settings(database_path=None))
    generate_sample_data(store.executor)

    print("=" * 60)
    print("notelens Notes Analytics Demo")
    print("=" * 60)

    # 1. Filtered search
    print("\n1. Open notes in Spain (page 1):")
    result = store.search_notes(status="open", country=3, limit=5)
    p = result.pagination
    print(f"   {p.total} matches, {p.total_pages} pages")
    for row in result.data:
        created = row["created_at"]
        print(f"   #{row['note_id']} {created:%Y-%m-%d} ({row['comments_count']} comments)")

    # 2. Bounding box plus text, OR'd with a user
    print("\n2. Around Madrid OR by user 4, mentioning 'road':")
    result = store.search_notes(
        bbox="-4.0,40.0,-3.0,41.0", user_id=4, operator="OR", text="road", limit=5
    )
    print(f"   {result.pagination.total} matches")

    # 3. Rankings
    print("\n3. Top users by closed notes:")
    for entry in store.user_rankings(metric="history_whole_closed", limit=5).rankings:
        print(f"   {entry.rank}. {entry.label}: {entry.value:.0f}")

    # 4. The metric allow-list
    print("\n4. Unknown metrics are rejected before any SQL is built:")
    try:
        store.user_rankings(metric="username; DROP TABLE notes")
    except InvalidMetric as e:
        print(f"   {e.message}")

    # 5. Trends
    print("\n5. Global activity by year:")
    for point in store.trends(type="global").trends:
        print(f"   {point.year}: {point.open} opened, {point.closed} closed")

    # 6. Hashtags
    print("\n6. Most used hashtags:")
    for row in store.list_hashtags(limit=3).data:
        print(f"   {row['hashtag']}: {row['count']}")

    # 7. Generated SQL
    print("\n7. Generated SQL for a text search:")
    queries = store.get_sql(text="bridge", status="closed")
    print(queries.count_sql)

    print("\n" + "=" * 60)
    print("Demo complete!")
    print("=" * 60)

    store.close()


if __name__ == "__main__":
    main()
