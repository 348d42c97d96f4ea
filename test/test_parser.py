# Author: PB and Claude
# Date: 2026-10-18
# License: (c) HRDAG, 2026, GPL-2 or newer
#
# ---
# test/test_parser.py

"""Tests for the CLI output parser."""

import pytest

from ipc_gateway.errors import GatewayError, ParseError
from ipc_gateway.parser import OutputParser, parse_pairs
from ipc_gateway.types import (
    BucketRecord,
    DeletionAck,
    FileRecord,
    ParserKind,
    UploadResult,
)


@pytest.fixture
def parser():
    return OutputParser()


class TestParsePairs:
    def test_basic(self):
        assert parse_pairs("Name=a, Owner=b") == {"Name": "a", "Owner": "b"}

    def test_splits_on_first_equals(self):
        assert parse_pairs("Name=a=b") == {"Name": "a=b"}

    def test_trims(self):
        assert parse_pairs("  Name = a ,  Size=3 ") == {"Name": "a", "Size": "3"}

    def test_missing_equals(self):
        with pytest.raises(ParseError, match="missing '='"):
            parse_pairs("Name=a, broken")

    def test_empty_key(self):
        with pytest.raises(ParseError, match="empty key"):
            parse_pairs("=value")

    def test_empty_text(self):
        with pytest.raises(ParseError):
            parse_pairs("   ")


class TestHandlerTable:
    def test_every_kind_has_a_handler(self, parser):
        assert set(parser._handlers) == set(ParserKind)

    def test_accepts_kind_value_string(self, parser):
        result = parser.parse("Bucket: Name=b1", "viewBucket")
        assert isinstance(result, BucketRecord)

    def test_unknown_kind_rejected(self, parser):
        with pytest.raises(ValueError):
            parser.parse("x", "noSuchKind")


class TestJSONFirst:
    def test_json_object_returned_as_is(self, parser):
        out = '{"error": {"code": "X", "message": "y"}}'
        assert parser.parse(out, ParserKind.CREATE_BUCKET) == {"error": {"code": "X", "message": "y"}}

    def test_json_list(self, parser):
        assert parser.parse('[{"Name": "a"}]', ParserKind.LIST_BUCKETS) == [{"Name": "a"}]

    def test_default_kind_returns_raw_text(self, parser):
        assert parser.parse("not json at all", ParserKind.DEFAULT) == "not json at all"


class TestBucketCreation:
    def test_scenario_created(self, parser):
        result = parser.parse("Bucket created: Name=mybucket, Owner=0xabc", ParserKind.CREATE_BUCKET)
        assert isinstance(result, BucketRecord)
        assert result.name == "mybucket"
        assert result.owner == "0xabc"
        assert result.to_dict() == {"Name": "mybucket", "Owner": "0xabc"}

    def test_idempotent(self, parser):
        out = "Bucket created: Name=mybucket, CreationDate=2024-01-01 10:00:00"
        assert parser.parse(out, ParserKind.CREATE_BUCKET) == parser.parse(out, ParserKind.CREATE_BUCKET)

    def test_empty_output(self, parser):
        with pytest.raises(ParseError, match="Empty response"):
            parser.parse("", ParserKind.CREATE_BUCKET)

    def test_whitespace_output(self, parser):
        with pytest.raises(ParseError, match="Empty response"):
            parser.parse("  \n ", ParserKind.CREATE_BUCKET)

    def test_wrong_prefix(self, parser):
        with pytest.raises(ParseError, match="Unexpected output format"):
            parser.parse("Bucket: Name=mybucket", ParserKind.CREATE_BUCKET)

    def test_pair_without_equals(self, parser):
        with pytest.raises(ParseError):
            parser.parse("Bucket created: Name=mybucket, junk", ParserKind.CREATE_BUCKET)

    def test_missing_name(self, parser):
        with pytest.raises(ParseError, match="no Name"):
            parser.parse("Bucket created: Owner=0xabc", ParserKind.CREATE_BUCKET)

    def test_unknown_keys_kept(self, parser):
        result = parser.parse("Bucket created: Name=b, ID=42", ParserKind.CREATE_BUCKET)
        assert result.extra == {"ID": "42"}
        assert result.to_dict() == {"Name": "b", "ID": "42"}


class TestBucketView:
    def test_view(self, parser):
        out = "Bucket: Name=b1, Owner=0x1, CreationDate=2024-01-01, Visibility=private"
        result = parser.parse(out, ParserKind.VIEW_BUCKET)
        assert result.creation_date == "2024-01-01"
        assert result.visibility == "private"

    def test_created_prefix_rejected(self, parser):
        with pytest.raises(ParseError):
            parser.parse("Bucket created: Name=b1", ParserKind.VIEW_BUCKET)

    def test_empty(self, parser):
        with pytest.raises(ParseError, match="Empty response"):
            parser.parse("", ParserKind.VIEW_BUCKET)


class TestBucketList:
    def test_lines_parsed_in_order(self, parser):
        out = "Bucket: Name=a, Owner=0x1\nBucket: Name=b, Owner=0x2\n"
        result = parser.parse(out, ParserKind.LIST_BUCKETS)
        assert [b.name for b in result] == ["a", "b"]

    def test_other_lines_skipped(self, parser):
        out = "Connecting...\nBucket: Name=a\nTotal: 1\n"
        result = parser.parse(out, ParserKind.LIST_BUCKETS)
        assert len(result) == 1
        assert result[0].name == "a"

    def test_no_matching_lines_is_empty_list(self, parser):
        assert parser.parse("No buckets found", ParserKind.LIST_BUCKETS) == []

    def test_empty_output_is_empty_list(self, parser):
        assert parser.parse("", ParserKind.LIST_BUCKETS) == []

    def test_malformed_record_line_fails(self, parser):
        with pytest.raises(ParseError):
            parser.parse("Bucket: Name=a, oops", ParserKind.LIST_BUCKETS)


class TestBucketDeletion:
    def test_deleted_with_name(self, parser):
        result = parser.parse("Bucket deleted: Name=mybucket", ParserKind.DELETE_BUCKET)
        assert isinstance(result, DeletionAck)
        assert result.name == "mybucket"
        assert result.to_dict() == {"message": "Bucket deleted successfully", "Name": "mybucket"}

    def test_deleted_without_tail(self, parser):
        result = parser.parse("Bucket deleted:", ParserKind.DELETE_BUCKET)
        assert result.name is None
        assert result.to_dict() == {"message": "Bucket deleted successfully"}

    def test_deleted_with_bare_name_tail(self, parser):
        result = parser.parse("Bucket deleted: mybucket", ParserKind.DELETE_BUCKET)
        assert isinstance(result, DeletionAck)
        assert result.name is None
        assert result.to_dict() == {"message": "Bucket deleted successfully"}

    def test_deleted_with_free_text_tail(self, parser):
        result = parser.parse("Bucket deleted: ok, see tx log", ParserKind.DELETE_BUCKET)
        assert result.to_dict() == {"message": "Bucket deleted successfully"}

    def test_nonempty_signal_before_prefix_check(self, parser):
        with pytest.raises(GatewayError) as exc_info:
            parser.parse("error: BucketNonempty", ParserKind.DELETE_BUCKET)
        assert exc_info.value.code == "BUCKET_NONEMPTY"
        assert exc_info.value.http_status == 400

    def test_wrong_prefix(self, parser):
        with pytest.raises(ParseError):
            parser.parse("Bucket: Name=a", ParserKind.DELETE_BUCKET)


class TestFiles:
    def test_file_info(self, parser):
        out = "File: Name=report.pdf, Size=1024, Hash=bafyabc, ContentType=application/pdf, LastModified=2024-02-02"
        result = parser.parse(out, ParserKind.FILE_INFO)
        assert isinstance(result, FileRecord)
        assert result.size == "1024"
        assert result.content_type == "application/pdf"
        assert result.to_dict()["LastModified"] == "2024-02-02"

    def test_file_info_wrong_prefix(self, parser):
        with pytest.raises(ParseError):
            parser.parse("Bucket: Name=x", ParserKind.FILE_INFO)

    def test_file_list(self, parser):
        out = "File: Name=a.txt, Size=1\nsomething else\nFile: Name=b.txt, Size=2"
        result = parser.parse(out, ParserKind.LIST_FILES)
        assert [f.name for f in result] == ["a.txt", "b.txt"]

    def test_file_list_empty(self, parser):
        assert parser.parse("Bucket is empty", ParserKind.LIST_FILES) == []


class TestUpload:
    def test_success_line(self, parser):
        out = "Uploading...\n2024/01/01 File uploaded successfully: Name=a.txt, Size=12, Hash=bafy\n"
        result = parser.parse(out, ParserKind.UPLOAD_FILE)
        assert isinstance(result, UploadResult)
        assert result.name == "a.txt"
        assert result.hash == "bafy"
        assert result.transaction_hash is None

    def test_fully_uploaded(self, parser):
        with pytest.raises(GatewayError) as exc_info:
            parser.parse("upload failed: FileFullyUploaded", ParserKind.UPLOAD_FILE)
        assert exc_info.value.code == "FILE_FULLY_UPLOADED"
        assert exc_info.value.http_status == 409

    def test_no_success_line(self, parser):
        with pytest.raises(ParseError, match="File upload failed") as exc_info:
            parser.parse("something went sideways", ParserKind.UPLOAD_FILE)
        assert exc_info.value.output == "something went sideways"


class TestPassthrough:
    def test_download_returns_text(self, parser):
        out = "File downloaded successfully: Name=a.txt"
        assert parser.parse(out, ParserKind.DOWNLOAD_FILE) == out
