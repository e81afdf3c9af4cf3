from datetime import date

from voiceframe.social import (
    blog_length,
    format_dateline,
    parse_article,
    parse_blog_post,
    parse_linkedin_post,
    parse_newsletter,
    parse_twitter_thread,
    split_paragraphs,
)


def test_split_paragraphs_drops_blank_sections():
    assert split_paragraphs("one\n\n  \n\ntwo") == ["one", "two"]


def test_linkedin_headline_rules():
    assert parse_linkedin_post("").headline == "Professional Insight"
    assert parse_linkedin_post("Short opener\n\nBody").headline == "Short opener"
    long_opener = "x" * 101
    assert parse_linkedin_post(long_opener).headline == "Transform Your Business with Voice Technology"


def test_linkedin_summary_is_truncated():
    post = parse_linkedin_post("a" * 250)
    assert post.summary == "a" * 200 + "..."
    assert post.character_count == 250
    assert post.suggested_times


def test_twitter_thread_keeps_bullets_and_numbers_from_one():
    text = "Intro tweet\n\nKey points:\nfiller line\n• first\n→ second\n\nOutro"
    thread = parse_twitter_thread(text)
    assert [t.order for t in thread.tweets] == [1, 2, 3]
    assert thread.tweets[1].content == "Key points:\n• first\n→ second"
    assert thread.tweets[1].character_count == len(thread.tweets[1].content)


def test_blog_length_buckets():
    assert blog_length(499) == "short"
    assert blog_length(500) == "medium"
    assert blog_length(1500) == "long"


def test_blog_post_metadata():
    post = parse_blog_post("Headline\n\n" + "word " * 600)
    assert post.title == "Headline"
    assert post.length == "medium"
    assert post.word_count == 601
    assert post.estimated_read_time == 4
    assert post.meta_description.endswith("...")
    assert len(post.meta_description) == 163


def test_article_pull_quotes_and_dateline():
    text = 'Lead\n\nShe said "this changes everything"\n\nPlain paragraph'
    article = parse_article(text, today=date(2024, 1, 15))
    assert article.dateline == "Monday, January 15, 2024"
    assert article.pull_quotes == ['She said "this changes everything"']


def test_article_default_pull_quote():
    assert parse_article("no quotes here").pull_quotes == ["Technology is reshaping how we work and communicate"]


def test_format_dateline():
    assert format_dateline(date(2023, 12, 1)) == "Friday, December 1, 2023"


def test_newsletter_keeps_paragraphs():
    newsletter = parse_newsletter("Para one\n\n\n\nPara two")
    assert newsletter.main_content == "Para one\n\nPara two"
    assert newsletter.greeting == "Hi {FirstName},"
