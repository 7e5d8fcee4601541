import unittest
from unittest.mock import MagicMock, patch

from azure.core.exceptions import ResourceNotFoundError

from retail.storage import AzureBlobStore, AzureFileShare, InMemoryBlobStore, S3BlobStore


class InMemoryBlobStoreTests(unittest.TestCase):
    def test_missing_download_raises_not_found(self):
        store = InMemoryBlobStore()
        with self.assertRaises(ResourceNotFoundError):
            store.download("missing.png")


class AzureBlobStoreTests(unittest.TestCase):
    @patch("retail.storage.BlobServiceClient")
    def test_upload_overwrites_existing_blob(self, mock_service_cls):
        container = mock_service_cls.from_connection_string.return_value.get_container_client.return_value
        blob_client = container.get_blob_client.return_value
        blob_client.url = "https://account.blob.core.windows.net/product-images/a.png"

        store = AzureBlobStore("UseDevelopmentStorage=true", "product-images")
        self.assertEqual(store.upload("a.png", b"data", "image/png"), blob_client.url)
        _, kwargs = blob_client.upload_blob.call_args
        self.assertTrue(kwargs["overwrite"])
        self.assertEqual(kwargs["content_settings"].content_type, "image/png")


class S3BlobStoreTests(unittest.TestCase):
    @patch("retail.storage.boto3.client")
    def test_upload_returns_virtual_host_url(self, mock_client):
        client = MagicMock()
        mock_client.return_value = client
        store = S3BlobStore(
            bucket="images",
            region="ap-guangzhou",
            endpoint="https://cos.ap-guangzhou.myqcloud.com",
            access_key_id="id",
            secret_access_key="secret",
        )
        url = store.upload("a.png", b"data", "image/png")
        client.put_object.assert_called_once_with(
            Bucket="images", Key="a.png", Body=b"data", ContentType="image/png"
        )
        self.assertEqual(url, "https://images.cos.ap-guangzhou.myqcloud.com/a.png")


class AzureFileShareTests(unittest.TestCase):
    @patch("retail.storage.ShareServiceClient")
    def test_upload_creates_then_writes_range(self, mock_service_cls):
        root = MagicMock()
        file_client = MagicMock()
        root.get_file_client.return_value = file_client
        service = mock_service_cls.from_connection_string.return_value
        service.get_share_client.return_value.get_directory_client.return_value = root

        share = AzureFileShare("UseDevelopmentStorage=true", "contracts")
        share.upload("Contract_x.pdf", b"%PDF")
        file_client.create_file.assert_called_once_with(size=4)
        file_client.upload_range.assert_called_once_with(b"%PDF", offset=0, length=4)

        root.list_directories_and_files.return_value = [
            {"name": "Contract_x.pdf", "is_directory": False},
            {"name": "archive", "is_directory": True},
        ]
        self.assertEqual(share.list(), ["Contract_x.pdf"])


if __name__ == "__main__":
    unittest.main()
