from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
    ]

    operations = [
        migrations.CreateModel(
            name='AssetProgress',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('user_id', models.CharField(max_length=128)),
                ('asset_id', models.CharField(max_length=128)),
                ('current_stage', models.CharField(blank=True, choices=[('prepare-workspace', 'Prepare Workspace'), ('download', 'Download'), ('write-to-storage', 'Write To Storage'), ('transcode-initialize', 'Transcode Initialize'), ('extract-metadata', 'Extract Metadata'), ('generate-thumbnail', 'Generate Thumbnail'), ('generate-mp4', 'Generate Mp4'), ('generate-hls', 'Generate Hls'), ('generate-iframe', 'Generate Iframe'), ('upload', 'Upload'), ('completion', 'Completion'), ('done', 'Done')], default='', max_length=32)),
                ('progress', models.JSONField(blank=True, default=dict)),
                ('metadata', models.JSONField(blank=True, default=dict)),
                ('total_files', models.PositiveIntegerField(blank=True, null=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
            ],
        ),
        migrations.AddConstraint(
            model_name='assetprogress',
            constraint=models.UniqueConstraint(fields=('user_id', 'asset_id'), name='uniq_asset_progress'),
        ),
    ]
