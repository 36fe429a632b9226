# apps/fees/migrations/0001_initial.py

from decimal import Decimal

import django.core.validators
from django.db import migrations, models
import django.db.models.deletion
import uuid


PAYMENT_METHOD_CHOICES = [
    ('CASH', 'Cash'),
    ('MPESA', 'M-Pesa'),
    ('MOBILE_MONEY', 'Mobile Money'),
    ('BANK_TRANSFER', 'Bank Transfer'),
    ('CHEQUE', 'Cheque'),
    ('CARD', 'Card'),
    ('OTHER', 'Other'),
]


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ('core', '0001_initial'),
        ('academics', '0001_initial'),
        ('students', '0001_initial'),
    ]

    operations = [
        migrations.CreateModel(
            name='FeeStructure',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('created_at', models.DateTimeField(db_index=True, help_text="When this record was created (in school's operational timezone)", verbose_name='Created At')),
                ('updated_at', models.DateTimeField(db_index=True, help_text="When this record was last updated (in school's operational timezone)", verbose_name='Updated At')),
                ('created_by_id', models.CharField(blank=True, db_index=True, help_text='ID of user who created this record', max_length=50, null=True, verbose_name='Created By ID')),
                ('updated_by_id', models.CharField(blank=True, db_index=True, help_text='ID of user who last updated this record', max_length=50, null=True, verbose_name='Updated By ID')),
                ('created_from_ip', models.GenericIPAddressField(blank=True, null=True, verbose_name='Created From IP')),
                ('change_reason', models.CharField(blank=True, help_text='Explanation for why this change was made', max_length=255, null=True, verbose_name='Change Reason')),
                ('total_amount', models.DecimalField(decimal_places=2, max_digits=12, validators=[django.core.validators.MinValueValidator(Decimal('0.00'))], verbose_name='Total Amount')),
                ('due_date', models.DateField(blank=True, null=True, verbose_name='Due Date')),
                ('description', models.CharField(blank=True, max_length=255, verbose_name='Description')),
                ('is_active', models.BooleanField(db_index=True, default=True, verbose_name='Is Active')),
                ('academic_year', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='fee_structures', to='academics.academicyear', verbose_name='Academic Year')),
                ('grade', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='fee_structures', to='academics.grade', verbose_name='Grade')),
                ('school', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='fee_structures', to='core.school', verbose_name='School')),
                ('term', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='fee_structures', to='academics.term', verbose_name='Term')),
            ],
            options={
                'verbose_name': 'Fee Structure',
                'verbose_name_plural': 'Fee Structures',
                'ordering': ['academic_year__year', 'term__order', 'created_at'],
                'indexes': [
                    models.Index(fields=['school', 'grade', 'academic_year'], name='fee_structure_scope_idx'),
                ],
            },
        ),
        migrations.CreateModel(
            name='FeeStructureItem',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('created_at', models.DateTimeField(db_index=True, help_text="When this record was created (in school's operational timezone)", verbose_name='Created At')),
                ('updated_at', models.DateTimeField(db_index=True, help_text="When this record was last updated (in school's operational timezone)", verbose_name='Updated At')),
                ('created_by_id', models.CharField(blank=True, db_index=True, help_text='ID of user who created this record', max_length=50, null=True, verbose_name='Created By ID')),
                ('updated_by_id', models.CharField(blank=True, db_index=True, help_text='ID of user who last updated this record', max_length=50, null=True, verbose_name='Updated By ID')),
                ('created_from_ip', models.GenericIPAddressField(blank=True, null=True, verbose_name='Created From IP')),
                ('change_reason', models.CharField(blank=True, help_text='Explanation for why this change was made', max_length=255, null=True, verbose_name='Change Reason')),
                ('name', models.CharField(max_length=100, verbose_name='Item Name')),
                ('amount', models.DecimalField(decimal_places=2, max_digits=12, validators=[django.core.validators.MinValueValidator(Decimal('0.00'))], verbose_name='Amount')),
                ('order', models.PositiveIntegerField(default=0, verbose_name='Order')),
                ('fee_structure', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='items', to='fees.feestructure', verbose_name='Fee Structure')),
            ],
            options={
                'verbose_name': 'Fee Structure Item',
                'verbose_name_plural': 'Fee Structure Items',
                'ordering': ['fee_structure', 'order'],
            },
        ),
        migrations.CreateModel(
            name='Payment',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('created_at', models.DateTimeField(db_index=True, help_text="When this record was created (in school's operational timezone)", verbose_name='Created At')),
                ('updated_at', models.DateTimeField(db_index=True, help_text="When this record was last updated (in school's operational timezone)", verbose_name='Updated At')),
                ('created_by_id', models.CharField(blank=True, db_index=True, help_text='ID of user who created this record', max_length=50, null=True, verbose_name='Created By ID')),
                ('updated_by_id', models.CharField(blank=True, db_index=True, help_text='ID of user who last updated this record', max_length=50, null=True, verbose_name='Updated By ID')),
                ('created_from_ip', models.GenericIPAddressField(blank=True, null=True, verbose_name='Created From IP')),
                ('change_reason', models.CharField(blank=True, help_text='Explanation for why this change was made', max_length=255, null=True, verbose_name='Change Reason')),
                ('amount', models.DecimalField(decimal_places=2, max_digits=12, validators=[django.core.validators.MinValueValidator(Decimal('0.01'))], verbose_name='Amount')),
                ('payment_date', models.DateTimeField(db_index=True, verbose_name='Payment Date')),
                ('payment_method', models.CharField(choices=PAYMENT_METHOD_CHOICES, default='CASH', max_length=20, verbose_name='Payment Method')),
                ('reference_number', models.CharField(blank=True, db_index=True, max_length=100, verbose_name='Reference Number')),
                ('receipt_number', models.CharField(blank=True, db_index=True, max_length=50, verbose_name='Receipt Number')),
                ('description', models.CharField(blank=True, max_length=255, verbose_name='Description')),
                ('received_by', models.CharField(max_length=100, verbose_name='Received By')),
                ('is_overpayment', models.BooleanField(default=False, help_text="Excess beyond every term's charge, carried forward at year end", verbose_name='Is Overpayment')),
                ('allocation_batch', models.UUIDField(blank=True, db_index=True, null=True, verbose_name='Allocation Batch')),
                ('academic_year', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='payments', to='academics.academicyear', verbose_name='Academic Year')),
                ('school', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='payments', to='core.school', verbose_name='School')),
                ('student', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='payments', to='students.student', verbose_name='Student')),
                ('term', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.PROTECT, related_name='payments', to='academics.term', verbose_name='Term')),
            ],
            options={
                'verbose_name': 'Payment',
                'verbose_name_plural': 'Payments',
                'ordering': ['payment_date', 'created_at'],
                'indexes': [
                    models.Index(fields=['student', 'academic_year'], name='payment_student_year_idx'),
                    models.Index(fields=['payment_date'], name='payment_date_idx'),
                ],
            },
        ),
        migrations.CreateModel(
            name='Receipt',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('created_at', models.DateTimeField(db_index=True, help_text="When this record was created (in school's operational timezone)", verbose_name='Created At')),
                ('updated_at', models.DateTimeField(db_index=True, help_text="When this record was last updated (in school's operational timezone)", verbose_name='Updated At')),
                ('created_by_id', models.CharField(blank=True, db_index=True, help_text='ID of user who created this record', max_length=50, null=True, verbose_name='Created By ID')),
                ('updated_by_id', models.CharField(blank=True, db_index=True, help_text='ID of user who last updated this record', max_length=50, null=True, verbose_name='Updated By ID')),
                ('created_from_ip', models.GenericIPAddressField(blank=True, null=True, verbose_name='Created From IP')),
                ('change_reason', models.CharField(blank=True, help_text='Explanation for why this change was made', max_length=255, null=True, verbose_name='Change Reason')),
                ('receipt_number', models.CharField(max_length=50, verbose_name='Receipt Number')),
                ('amount', models.DecimalField(decimal_places=2, max_digits=12, verbose_name='Amount')),
                ('payment_date', models.DateTimeField(db_index=True, verbose_name='Payment Date')),
                ('payment_method', models.CharField(choices=PAYMENT_METHOD_CHOICES, max_length=20, verbose_name='Payment Method')),
                ('reference_number', models.CharField(blank=True, max_length=100, verbose_name='Reference Number')),
                ('academic_year_outstanding_before', models.DecimalField(decimal_places=2, max_digits=12, verbose_name='Academic Year Outstanding Before')),
                ('academic_year_outstanding_after', models.DecimalField(decimal_places=2, max_digits=12, verbose_name='Academic Year Outstanding After')),
                ('term_outstanding_before', models.DecimalField(decimal_places=2, max_digits=12, verbose_name='Term Outstanding Before')),
                ('term_outstanding_after', models.DecimalField(decimal_places=2, max_digits=12, verbose_name='Term Outstanding After')),
                ('received_by', models.CharField(max_length=100, verbose_name='Received By')),
                ('academic_year', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='receipts', to='academics.academicyear', verbose_name='Academic Year')),
                ('payment', models.OneToOneField(on_delete=django.db.models.deletion.PROTECT, related_name='receipt', to='fees.payment', verbose_name='Payment')),
                ('school', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='receipts', to='core.school', verbose_name='School')),
                ('student', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='receipts', to='students.student', verbose_name='Student')),
                ('term', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.PROTECT, related_name='receipts', to='academics.term', verbose_name='Term')),
            ],
            options={
                'verbose_name': 'Receipt',
                'verbose_name_plural': 'Receipts',
                'ordering': ['payment_date', 'receipt_number'],
            },
        ),
        migrations.AddConstraint(
            model_name='receipt',
            constraint=models.UniqueConstraint(fields=('school', 'receipt_number'), name='unique_receipt_number_per_school'),
        ),
        migrations.CreateModel(
            name='CarryForwardEntry',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('created_at', models.DateTimeField(db_index=True, help_text="When this record was created (in school's operational timezone)", verbose_name='Created At')),
                ('updated_at', models.DateTimeField(db_index=True, help_text="When this record was last updated (in school's operational timezone)", verbose_name='Updated At')),
                ('created_by_id', models.CharField(blank=True, db_index=True, help_text='ID of user who created this record', max_length=50, null=True, verbose_name='Created By ID')),
                ('updated_by_id', models.CharField(blank=True, db_index=True, help_text='ID of user who last updated this record', max_length=50, null=True, verbose_name='Updated By ID')),
                ('created_from_ip', models.GenericIPAddressField(blank=True, null=True, verbose_name='Created From IP')),
                ('change_reason', models.CharField(blank=True, help_text='Explanation for why this change was made', max_length=255, null=True, verbose_name='Change Reason')),
                ('entry_type', models.CharField(choices=[('ARREARS', 'Arrears Brought Forward'), ('CREDIT', 'Overpayment Credit Brought Forward')], max_length=10, verbose_name='Entry Type')),
                ('amount', models.DecimalField(decimal_places=2, max_digits=12, validators=[django.core.validators.MinValueValidator(Decimal('0.01'))], verbose_name='Amount')),
                ('entry_date', models.DateTimeField(verbose_name='Entry Date')),
                ('reference', models.CharField(max_length=50, verbose_name='Reference')),
                ('description', models.CharField(blank=True, max_length=255, verbose_name='Description')),
                ('recorded_by', models.CharField(default='System', max_length=100, verbose_name='Recorded By')),
                ('from_academic_year', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='carry_forwards_out', to='academics.academicyear', verbose_name='From Academic Year')),
                ('school', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='carry_forward_entries', to='core.school', verbose_name='School')),
                ('student', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='carry_forward_entries', to='students.student', verbose_name='Student')),
                ('to_academic_year', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='carry_forwards_in', to='academics.academicyear', verbose_name='To Academic Year')),
            ],
            options={
                'verbose_name': 'Carry Forward Entry',
                'verbose_name_plural': 'Carry Forward Entries',
                'ordering': ['entry_date'],
            },
        ),
        migrations.AddConstraint(
            model_name='carryforwardentry',
            constraint=models.UniqueConstraint(fields=('student', 'from_academic_year', 'to_academic_year'), name='unique_carry_forward_per_transition'),
        ),
        migrations.CreateModel(
            name='YearlyClosingBalance',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('created_at', models.DateTimeField(db_index=True, help_text="When this record was created (in school's operational timezone)", verbose_name='Created At')),
                ('updated_at', models.DateTimeField(db_index=True, help_text="When this record was last updated (in school's operational timezone)", verbose_name='Updated At')),
                ('created_by_id', models.CharField(blank=True, db_index=True, help_text='ID of user who created this record', max_length=50, null=True, verbose_name='Created By ID')),
                ('updated_by_id', models.CharField(blank=True, db_index=True, help_text='ID of user who last updated this record', max_length=50, null=True, verbose_name='Updated By ID')),
                ('created_from_ip', models.GenericIPAddressField(blank=True, null=True, verbose_name='Created From IP')),
                ('change_reason', models.CharField(blank=True, help_text='Explanation for why this change was made', max_length=255, null=True, verbose_name='Change Reason')),
                ('opening_balance', models.DecimalField(decimal_places=2, max_digits=12, verbose_name='Opening Balance')),
                ('total_charged', models.DecimalField(decimal_places=2, max_digits=12, verbose_name='Total Charged')),
                ('total_paid', models.DecimalField(decimal_places=2, max_digits=12, verbose_name='Total Paid')),
                ('closing_balance', models.DecimalField(decimal_places=2, max_digits=12, verbose_name='Closing Balance')),
                ('is_carried_forward', models.BooleanField(default=False, verbose_name='Carried Forward')),
                ('closed_by', models.CharField(default='System', max_length=100, verbose_name='Closed By')),
                ('academic_year', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='closing_balances', to='academics.academicyear', verbose_name='Academic Year')),
                ('student', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='yearly_balances', to='students.student', verbose_name='Student')),
            ],
            options={
                'verbose_name': 'Yearly Closing Balance',
                'verbose_name_plural': 'Yearly Closing Balances',
                'ordering': ['academic_year__year'],
            },
        ),
        migrations.AddConstraint(
            model_name='yearlyclosingbalance',
            constraint=models.UniqueConstraint(fields=('student', 'academic_year'), name='unique_closing_balance_per_year'),
        ),
    ]
