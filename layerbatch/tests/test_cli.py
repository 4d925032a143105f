"""Tests for CLI module."""

import pytest
from layerbatch.cli import create_parser, main

CREDENTIAL_VARS = ['GOOGLE_CLIENT_ID', 'GOOGLE_CLIENT_SECRET', 'GOOGLE_REFRESH_TOKEN', 'GOOGLE_DRIVE_FOLDER_ID']


class TestCreateParser:
    """Tests for argument parser creation."""

    def test_generate_command(self):
        """Test generate command parsing."""
        parser = create_parser()
        args = parser.parse_args([
            'generate', '-o', 'out', '--layer', 'Background', '--layer', 'Body',
            '--workers', '4', '--format', 'webp', '--quality', '80', '--batch-size', '50', '--force',
        ])

        assert args.command == 'generate'
        assert args.output_dir == 'out'
        assert args.layer == ['Background', 'Body']
        assert args.workers == 4
        assert args.format == 'webp'
        assert args.quality == 80
        assert args.batch_size == 50
        assert args.force is True

    def test_upload_command(self):
        """Test upload command parsing."""
        parser = create_parser()
        args = parser.parse_args([
            'upload', '--folder-id', 'abc', '--chunk-size', '524288',
            '--concurrent-uploads', '5', '--delete-local',
        ])

        assert args.command == 'upload'
        assert args.folder_id == 'abc'
        assert args.chunk_size == 524288
        assert args.concurrent_uploads == 5
        assert args.delete_local is True

    def test_run_command_has_both_groups(self):
        """Test run accepts generation and upload flags."""
        parser = create_parser()
        args = parser.parse_args(['run', '--layer', 'Body', '--folder-id', 'abc'])

        assert args.layer == ['Body']
        assert args.folder_id == 'abc'

    def test_invalid_format(self):
        """Test unknown formats are rejected."""
        parser = create_parser()

        with pytest.raises(SystemExit):
            parser.parse_args(['generate', '--format', 'gif'])


class TestMain:
    """Tests for main entry point."""

    def test_no_command(self):
        """Test running without command shows help."""
        assert main([]) == 1

    def test_generate_invalid_config(self, tmp_path):
        """Test generate refuses a missing layers directory."""
        result = main(['generate', '-q', '--layers-dir', str(tmp_path / 'missing'), '--layer', 'Body'])

        assert result == 1

    def test_upload_missing_credentials(self, monkeypatch, output_dir):
        """Test upload refuses to start without credentials."""
        for name in CREDENTIAL_VARS:
            monkeypatch.delenv(name, raising=False)

        assert main(['upload', '-q', '-o', str(output_dir)]) == 1

    def test_generate(self, output_dir, layers_dir, layer_order, write_metadata, capsys):
        """Test a full generate run."""
        write_metadata(3)
        argv = ['generate', '-o', str(output_dir), '--layers-dir', str(layers_dir), '-w', '1']
        for layer in layer_order:
            argv += ['--layer', layer]

        result = main(argv)

        assert result == 0
        assert (output_dir / '1-10' / 'img' / '3.png').exists()
        assert 'Rendered: 3 of 3' in capsys.readouterr().out

    def test_upload(self, monkeypatch, output_dir, mocker):
        """Test upload returns 1 when files failed."""
        for name in CREDENTIAL_VARS:
            monkeypatch.setenv(name, 'x')
        pipeline_cls = mocker.patch('layerbatch.cli.Pipeline')
        pipeline_cls.return_value.upload.return_value.failed = 2

        assert main(['upload', '-q', '-o', str(output_dir)]) == 1

    def test_keyboard_interrupt(self, output_dir, layers_dir, mocker):
        """Test Ctrl-C exits with 130."""
        pipeline_cls = mocker.patch('layerbatch.cli.Pipeline')
        pipeline_cls.return_value.generate.side_effect = KeyboardInterrupt

        result = main(['generate', '-q', '-o', str(output_dir), '--layers-dir', str(layers_dir), '--layer', 'Body'])

        assert result == 130
