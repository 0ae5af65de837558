import uuid

import django.db.models.deletion
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="VisitQueueEntry",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("tenant_scope", models.CharField(db_index=True, max_length=64)),
                ("patient_id", models.CharField(db_index=True, max_length=64)),
                ("appointment_id", models.CharField(blank=True, max_length=64, null=True)),
                ("department", models.CharField(max_length=100)),
                ("service_type", models.CharField(blank=True, default="consultation", max_length=100)),
                ("priority", models.PositiveSmallIntegerField(default=3)),
                ("queue_number", models.PositiveIntegerField()),
                ("stage", models.CharField(default="registration", max_length=32)),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("waiting", "Waiting"),
                            ("called", "Called"),
                            ("in_progress", "In progress"),
                            ("completed", "Completed"),
                            ("cancelled", "Cancelled"),
                            ("no_show", "No show"),
                        ],
                        db_index=True,
                        default="waiting",
                        max_length=20,
                    ),
                ),
                ("room_number", models.CharField(blank=True, max_length=50, null=True)),
                ("serving_staff", models.CharField(blank=True, max_length=64, null=True)),
                ("enqueued_at", models.DateTimeField(editable=False)),
                ("called_at", models.DateTimeField(blank=True, null=True)),
                ("started_at", models.DateTimeField(blank=True, null=True)),
                ("completed_at", models.DateTimeField(blank=True, null=True)),
                ("removed_at", models.DateTimeField(blank=True, null=True)),
                ("notes", models.TextField(blank=True, default="")),
            ],
            options={
                "db_table": "visit_queue_entries",
            },
        ),
        migrations.CreateModel(
            name="VisitQueueTransition",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                (
                    "field",
                    models.CharField(
                        choices=[("status", "status"), ("stage", "stage")], default="status", max_length=10
                    ),
                ),
                ("from_value", models.CharField(blank=True, max_length=32, null=True)),
                ("to_value", models.CharField(max_length=32)),
                ("operator", models.CharField(blank=True, default="", max_length=64)),
                ("timestamp", models.DateTimeField(auto_now_add=True)),
                ("reason", models.CharField(blank=True, max_length=255)),
                (
                    "entry",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="transitions",
                        to="patientflow.visitqueueentry",
                    ),
                ),
            ],
            options={
                "db_table": "visit_queue_transitions",
            },
        ),
        migrations.CreateModel(
            name="RoomBooking",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("tenant_scope", models.CharField(max_length=64)),
                ("room_name", models.CharField(max_length=100)),
                ("room_type", models.CharField(blank=True, max_length=50, null=True)),
                ("booking_date", models.DateField()),
                ("start_time", models.TimeField()),
                ("end_time", models.TimeField()),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("booked", "Booked"),
                            ("in_use", "In use"),
                            ("completed", "Completed"),
                            ("cancelled", "Cancelled"),
                        ],
                        db_index=True,
                        default="booked",
                        max_length=20,
                    ),
                ),
                ("appointment_id", models.CharField(blank=True, max_length=64, null=True)),
                ("equipment_required", models.JSONField(blank=True, default=list)),
                ("notes", models.TextField(blank=True, default="")),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "visit",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="room_bookings",
                        to="patientflow.visitqueueentry",
                    ),
                ),
            ],
            options={
                "db_table": "room_bookings",
            },
        ),
        migrations.CreateModel(
            name="ActivityEvent",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("user", models.CharField(blank=True, default="", max_length=64)),
                ("tenant_scope", models.CharField(blank=True, default="", max_length=64)),
                ("activity_type", models.CharField(max_length=64)),
                ("entity_type", models.CharField(blank=True, max_length=64, null=True)),
                ("entity_id", models.CharField(blank=True, max_length=64, null=True)),
                ("description", models.CharField(blank=True, default="", max_length=255)),
                ("metadata", models.JSONField(blank=True, default=dict)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
            ],
            options={
                "db_table": "activities",
            },
        ),
        migrations.CreateModel(
            name="LockKey",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("key", models.CharField(max_length=255, unique=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
            ],
        ),
        migrations.AddConstraint(
            model_name="visitqueueentry",
            constraint=models.UniqueConstraint(
                condition=models.Q(
                    ("removed_at__isnull", True), ("status__in", ["waiting", "called", "in_progress"])
                ),
                fields=("tenant_scope", "patient_id", "department"),
                name="uq_active_visit_per_department",
            ),
        ),
        migrations.AddIndex(
            model_name="visitqueueentry",
            index=models.Index(
                fields=["tenant_scope", "department", "status", "priority", "enqueued_at"],
                name="vqe_dept_status_prio_idx",
            ),
        ),
        migrations.AddIndex(
            model_name="visitqueueentry",
            index=models.Index(
                fields=["tenant_scope", "department", "enqueued_at"], name="vqe_dept_enqueued_idx"
            ),
        ),
        migrations.AddIndex(
            model_name="roombooking",
            index=models.Index(fields=["tenant_scope", "room_name", "booking_date"], name="rb_room_day_idx"),
        ),
        migrations.AddIndex(
            model_name="roombooking",
            index=models.Index(fields=["tenant_scope", "booking_date", "start_time"], name="rb_day_start_idx"),
        ),
        migrations.AddIndex(
            model_name="activityevent",
            index=models.Index(fields=["activity_type", "created_at"], name="act_type_created_idx"),
        ),
        migrations.AddIndex(
            model_name="activityevent",
            index=models.Index(fields=["entity_type", "entity_id", "created_at"], name="act_entity_created_idx"),
        ),
        migrations.AddIndex(
            model_name="activityevent",
            index=models.Index(fields=["tenant_scope", "created_at"], name="act_tenant_created_idx"),
        ),
    ]
