# apps/promotions/migrations/0001_initial.py

from decimal import Decimal

import django.core.validators
from django.db import migrations, models
import django.db.models.deletion
import uuid


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ('core', '0001_initial'),
        ('academics', '0001_initial'),
        ('students', '0001_initial'),
    ]

    operations = [
        migrations.CreateModel(
            name='PromotionCriteria',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('created_at', models.DateTimeField(db_index=True, help_text="When this record was created (in school's operational timezone)", verbose_name='Created At')),
                ('updated_at', models.DateTimeField(db_index=True, help_text="When this record was last updated (in school's operational timezone)", verbose_name='Updated At')),
                ('created_by_id', models.CharField(blank=True, db_index=True, help_text='ID of user who created this record', max_length=50, null=True, verbose_name='Created By ID')),
                ('updated_by_id', models.CharField(blank=True, db_index=True, help_text='ID of user who last updated this record', max_length=50, null=True, verbose_name='Updated By ID')),
                ('created_from_ip', models.GenericIPAddressField(blank=True, null=True, verbose_name='Created From IP')),
                ('change_reason', models.CharField(blank=True, help_text='Explanation for why this change was made', max_length=255, null=True, verbose_name='Change Reason')),
                ('name', models.CharField(max_length=100, verbose_name='Name')),
                ('description', models.TextField(blank=True, verbose_name='Description')),
                ('priority', models.PositiveIntegerField(default=1, help_text='Lower numbers are tried first', verbose_name='Priority')),
                ('version', models.PositiveIntegerField(default=1, editable=False, verbose_name='Version')),
                ('is_active', models.BooleanField(db_index=True, default=True, verbose_name='Is Active')),
                ('min_grade', models.DecimalField(blank=True, decimal_places=2, max_digits=5, null=True, verbose_name='Minimum Average Grade (%)')),
                ('max_fee_balance', models.DecimalField(blank=True, decimal_places=2, max_digits=12, null=True, verbose_name='Maximum Fee Balance')),
                ('max_disciplinary_cases', models.PositiveIntegerField(blank=True, null=True, verbose_name='Maximum Disciplinary Cases')),
                ('min_attendance', models.DecimalField(blank=True, decimal_places=2, max_digits=5, null=True, verbose_name='Minimum Attendance (%)')),
                ('grade', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='promotion_criteria', to='academics.grade', verbose_name='Class Level')),
                ('school', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='promotion_criteria', to='core.school', verbose_name='School')),
            ],
            options={
                'verbose_name': 'Promotion Criteria',
                'verbose_name_plural': 'Promotion Criteria',
                'ordering': ['school', 'grade__level', 'priority'],
                'indexes': [
                    models.Index(fields=['school', 'grade', 'is_active'], name='criteria_school_grade_idx'),
                ],
            },
        ),
        migrations.CreateModel(
            name='CriteriaItem',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('created_at', models.DateTimeField(db_index=True, help_text="When this record was created (in school's operational timezone)", verbose_name='Created At')),
                ('updated_at', models.DateTimeField(db_index=True, help_text="When this record was last updated (in school's operational timezone)", verbose_name='Updated At')),
                ('created_by_id', models.CharField(blank=True, db_index=True, help_text='ID of user who created this record', max_length=50, null=True, verbose_name='Created By ID')),
                ('updated_by_id', models.CharField(blank=True, db_index=True, help_text='ID of user who last updated this record', max_length=50, null=True, verbose_name='Updated By ID')),
                ('created_from_ip', models.GenericIPAddressField(blank=True, null=True, verbose_name='Created From IP')),
                ('change_reason', models.CharField(blank=True, help_text='Explanation for why this change was made', max_length=255, null=True, verbose_name='Change Reason')),
                ('kind', models.CharField(choices=[('grade', 'Minimum Average Grade'), ('fee_balance', 'Maximum Fee Balance'), ('attendance', 'Minimum Attendance'), ('disciplinary', 'Maximum Disciplinary Cases'), ('subject_failures', 'Maximum Subject Failures'), ('custom', 'Custom')], max_length=20, verbose_name='Type')),
                ('name', models.CharField(blank=True, max_length=100, verbose_name='Name')),
                ('limit', models.DecimalField(decimal_places=2, max_digits=12, validators=[django.core.validators.MinValueValidator(Decimal('0.00'))], verbose_name='Limit')),
                ('unit', models.CharField(blank=True, max_length=20, verbose_name='Unit')),
                ('is_required', models.BooleanField(default=False, help_text='Fee balance: full payment required. Disciplinary: clean record required. Custom: missing values fail.', verbose_name='Required')),
                ('order', models.PositiveIntegerField(default=0, verbose_name='Order')),
                ('criteria', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='items', to='promotions.promotioncriteria', verbose_name='Criteria')),
            ],
            options={
                'verbose_name': 'Criteria Item',
                'verbose_name_plural': 'Criteria Items',
                'ordering': ['criteria', 'order'],
            },
        ),
        migrations.CreateModel(
            name='PromotionLog',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('created_at', models.DateTimeField(db_index=True, help_text="When this record was created (in school's operational timezone)", verbose_name='Created At')),
                ('updated_at', models.DateTimeField(db_index=True, help_text="When this record was last updated (in school's operational timezone)", verbose_name='Updated At')),
                ('created_by_id', models.CharField(blank=True, db_index=True, help_text='ID of user who created this record', max_length=50, null=True, verbose_name='Created By ID')),
                ('updated_by_id', models.CharField(blank=True, db_index=True, help_text='ID of user who last updated this record', max_length=50, null=True, verbose_name='Updated By ID')),
                ('created_from_ip', models.GenericIPAddressField(blank=True, null=True, verbose_name='Created From IP')),
                ('change_reason', models.CharField(blank=True, help_text='Explanation for why this change was made', max_length=255, null=True, verbose_name='Change Reason')),
                ('batch_id', models.UUIDField(db_index=True, verbose_name='Batch')),
                ('from_class_name', models.CharField(blank=True, max_length=60, verbose_name='From Class')),
                ('to_class_name', models.CharField(blank=True, max_length=60, verbose_name='To Class')),
                ('promotion_type', models.CharField(choices=[('single', 'Single Student'), ('bulk', 'Bulk Selection'), ('class', 'Whole Class'), ('school', 'School-wide')], max_length=10, verbose_name='Promotion Type')),
                ('promotion_date', models.DateTimeField(db_index=True, verbose_name='Promotion Date')),
                ('promoted_by', models.CharField(max_length=100, verbose_name='Promoted By')),
                ('criteria_snapshot', models.JSONField(blank=True, default=dict, verbose_name='Criteria Snapshot')),
                ('criteria_results', models.JSONField(blank=True, default=list, verbose_name='Criteria Results')),
                ('is_manual_override', models.BooleanField(default=False, verbose_name='Manual Override')),
                ('override_reason', models.TextField(blank=True, verbose_name='Override Reason')),
                ('is_graduation', models.BooleanField(default=False, verbose_name='Graduation')),
                ('average_grade', models.DecimalField(blank=True, decimal_places=2, max_digits=5, null=True)),
                ('outstanding_balance', models.DecimalField(blank=True, decimal_places=2, max_digits=12, null=True)),
                ('disciplinary_cases', models.PositiveIntegerField(blank=True, null=True)),
                ('notes', models.TextField(blank=True, verbose_name='Notes')),
                ('from_academic_year', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.PROTECT, related_name='+', to='academics.academicyear')),
                ('from_class', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='+', to='academics.class')),
                ('from_grade', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='+', to='academics.grade')),
                ('school', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='promotion_logs', to='core.school', verbose_name='School')),
                ('student', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='promotion_logs', to='students.student', verbose_name='Student')),
                ('to_academic_year', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.PROTECT, related_name='+', to='academics.academicyear')),
                ('to_class', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='+', to='academics.class')),
                ('to_grade', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='+', to='academics.grade')),
            ],
            options={
                'verbose_name': 'Promotion Log',
                'verbose_name_plural': 'Promotion Logs',
                'ordering': ['-promotion_date'],
                'indexes': [
                    models.Index(fields=['student', 'promotion_date'], name='promotion_log_student_idx'),
                    models.Index(fields=['school', 'promotion_date'], name='promotion_log_school_idx'),
                ],
            },
        ),
        migrations.CreateModel(
            name='PromotionExclusion',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('created_at', models.DateTimeField(db_index=True, help_text="When this record was created (in school's operational timezone)", verbose_name='Created At')),
                ('updated_at', models.DateTimeField(db_index=True, help_text="When this record was last updated (in school's operational timezone)", verbose_name='Updated At')),
                ('created_by_id', models.CharField(blank=True, db_index=True, help_text='ID of user who created this record', max_length=50, null=True, verbose_name='Created By ID')),
                ('updated_by_id', models.CharField(blank=True, db_index=True, help_text='ID of user who last updated this record', max_length=50, null=True, verbose_name='Updated By ID')),
                ('created_from_ip', models.GenericIPAddressField(blank=True, null=True, verbose_name='Created From IP')),
                ('change_reason', models.CharField(blank=True, help_text='Explanation for why this change was made', max_length=255, null=True, verbose_name='Change Reason')),
                ('batch_id', models.UUIDField(db_index=True, verbose_name='Batch')),
                ('reason', models.TextField(verbose_name='Reason')),
                ('notes', models.TextField(blank=True, verbose_name='Notes')),
                ('excluded_by', models.CharField(max_length=100, verbose_name='Excluded By')),
                ('academic_year', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.PROTECT, related_name='+', to='academics.academicyear')),
                ('school', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='promotion_exclusions', to='core.school', verbose_name='School')),
                ('student', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='promotion_exclusions', to='students.student', verbose_name='Student')),
            ],
            options={
                'verbose_name': 'Promotion Exclusion',
                'verbose_name_plural': 'Promotion Exclusions',
                'ordering': ['-created_at'],
            },
        ),
    ]
